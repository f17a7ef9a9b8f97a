"""
Session controller for systematic pattern testing

This module implements the interaction state machine:

    IDLE -> DRAWING -> AWAITING_VALIDATION -> RESOLVED -> IDLE

It feeds pointer hits through the pattern engine, classifies finished
drawings against the rejected-pattern store, records the human yes/no
judgment and keeps the running statistics. Rendering is not part of the
controller: surfaces subscribe to snapshots and redraw from them.
"""

import logging
from typing import Callable, Iterable, List, Optional

from ..interfaces import (
    Classification, SessionState, Outcome, IScheduler, ScheduledTask,
    IKeyValueStore
)
from ..engine.pattern_engine import PatternEngine, is_valid_dot
from ..models.session import SessionStatistics, SessionSnapshot, remaining_patterns
from ..config import ConfigManager
from .pattern_store import RejectedPatternStore, create_store
from .scheduler import ManualScheduler


DEFAULT_DISMISS_DELAY = 1.5

SnapshotListener = Callable[[SessionSnapshot], None]


class SessionController:
    """
    Owner of the pattern test session

    Every operation is a guarded transition: calling it from a state where
    it does not apply is logged and ignored rather than raised.
    """

    def __init__(self,
                 store: RejectedPatternStore,
                 scheduler: Optional[IScheduler] = None,
                 engine: Optional[PatternEngine] = None,
                 dismiss_delay: float = DEFAULT_DISMISS_DELAY):
        """
        Initialize the session and load the rejected-pattern history

        Args:
            store: Rejected-pattern store (loaded here, once)
            scheduler: Runs the delayed auto-dismiss; defaults to a ManualScheduler
            engine: Pattern engine; defaults to Android rules with minimum length 4
            dismiss_delay: Seconds a duplicate/invalid result stays on screen
        """
        self.logger = logging.getLogger(__name__)
        self.store = store
        self.scheduler = scheduler or ManualScheduler()
        self.engine = engine or PatternEngine()
        self.dismiss_delay = dismiss_delay

        self._state = SessionState.IDLE
        self._sequence: List[int] = []
        self._outcome: Optional[Outcome] = None
        self._dismiss_task: Optional[ScheduledTask] = None
        self._listeners: List[SnapshotListener] = []

        loaded = self.store.load()
        self.statistics = SessionStatistics.from_history(loaded)
        self.logger.info(f"Session started with {loaded} rejected patterns")

    @classmethod
    def from_config(cls,
                    config: ConfigManager,
                    scheduler: Optional[IScheduler] = None,
                    backend: Optional[IKeyValueStore] = None) -> 'SessionController':
        """Build a controller wired to the configured store and timings"""
        store = RejectedPatternStore(backend or create_store(config),
                                     config.storage_settings.store_key)
        engine = PatternEngine(min_length=config.session_settings.min_pattern_length)
        return cls(store,
                   scheduler=scheduler,
                   engine=engine,
                   dismiss_delay=config.session_settings.dismiss_delay)

    # State accessors

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def sequence(self) -> tuple:
        return tuple(self._sequence)

    @property
    def outcome(self) -> Optional[Outcome]:
        return self._outcome

    @property
    def rejected_count(self) -> int:
        return len(self.store)

    @property
    def remaining(self) -> int:
        return remaining_patterns(len(self.store))

    @property
    def dismissal_pending(self) -> bool:
        return self._dismiss_task is not None and self._dismiss_task.active

    @property
    def has_history(self) -> bool:
        return len(self.store) > 0

    def snapshot(self, event: Optional[str] = None) -> SessionSnapshot:
        return SessionSnapshot(
            state=self._state,
            sequence=tuple(self._sequence),
            outcome=self._outcome,
            tested_count=self.statistics.tested_count,
            invalid_count=self.statistics.invalid_count,
            rejected_count=len(self.store),
            dismissal_pending=self.dismissal_pending,
            event=event
        )

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a listener for snapshots; returns a function that unsubscribes it"""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # Drawing

    def pointer_down(self, dot: Optional[int]) -> bool:
        """
        Start a new drawing on dot

        Allowed from any state. A pending judgment, a displayed result and
        a scheduled dismissal are all discarded.
        """
        if not is_valid_dot(dot):
            return False

        self._cancel_dismissal()
        if self._state == SessionState.AWAITING_VALIDATION:
            self.logger.debug("Discarding pending judgment for a new drawing")

        self._sequence = [dot]
        self._outcome = None
        self._state = SessionState.DRAWING
        self._notify("drawing_started")
        return True

    def pointer_move(self, dot: Optional[int]) -> bool:
        """Extend the drawing with dot; returns True if the sequence grew"""
        if self._state != SessionState.DRAWING or not is_valid_dot(dot):
            return False

        extended = self.engine.append_dot(self._sequence, dot)
        if len(extended) == len(self._sequence):
            return False

        self._sequence = extended
        self._notify("dot_added")
        return True

    def pointer_up(self) -> Optional[Classification]:
        """Finish the drawing and classify it against the rejected history"""
        if self._state != SessionState.DRAWING:
            return None

        classification = self.engine.classify(self._sequence, self.store)

        if classification == Classification.TOO_SHORT:
            self.logger.debug(f"Discarding short drawing ({len(self._sequence)} dots)")
            self._sequence = []
            self._state = SessionState.IDLE
        elif classification == Classification.DUPLICATE:
            self.logger.info(f"Pattern {self.current_key} was already marked invalid")
            self._resolve(Outcome.DUPLICATE)
            self._schedule_dismissal()
        else:
            self._state = SessionState.AWAITING_VALIDATION

        self._notify(classification.value)
        return classification

    def draw(self, dots: Iterable[int]) -> Optional[Classification]:
        """Replay a whole gesture: press on the first dot, move through the rest, release"""
        dots = list(dots)
        if not dots or not self.pointer_down(dots[0]):
            return None

        for dot in dots[1:]:
            self.pointer_move(dot)
        return self.pointer_up()

    @property
    def current_key(self) -> Optional[str]:
        if not self._sequence:
            return None
        return self.engine.encode(self._sequence)

    # Human judgment

    def mark_invalid(self) -> bool:
        """Record the awaiting pattern as wrong and remember it"""
        if self._state != SessionState.AWAITING_VALIDATION:
            self.logger.debug(f"Ignoring 'no' judgment in state {self._state.value}")
            return False

        key = self.current_key
        if not self.store.add(key):
            self.logger.debug(f"Pattern {key} was already stored")
        self.statistics.record_invalid()
        self.logger.info(f"Pattern {key} marked invalid ({self.remaining} remaining)")

        self._resolve(Outcome.INVALID)
        self._schedule_dismissal()
        self._notify(Outcome.INVALID.value)
        return True

    def mark_valid(self) -> bool:
        """Record the awaiting pattern as the correct one; the result stays until dismissed"""
        if self._state != SessionState.AWAITING_VALIDATION:
            self.logger.debug(f"Ignoring 'yes' judgment in state {self._state.value}")
            return False

        self.statistics.record_valid()
        self.logger.info(f"Pattern {self.current_key} confirmed as the correct pattern")

        self._resolve(Outcome.VALID)
        self._notify(Outcome.VALID.value)
        return True

    # Dismissal and reset

    def dismiss(self) -> bool:
        """Clear the displayed pattern or result; not allowed mid-draw"""
        if self._state == SessionState.DRAWING:
            return False
        if self._state == SessionState.IDLE and not self._sequence:
            return False

        self._cancel_dismissal()
        self._clear()
        self._notify("dismissed")
        return True

    def reset(self, confirmed: bool = False) -> bool:
        """
        Forget every rejected pattern and zero the statistics

        This cannot be undone, so the caller must pass confirmed=True after
        asking the user.
        """
        if not confirmed:
            self.logger.debug("Reset requested without confirmation, ignoring")
            return False

        self._cancel_dismissal()
        self.store.clear()
        self.statistics.clear()
        self._clear()
        self.logger.warning("All rejected patterns and statistics were reset")
        self._notify("reset")
        return True

    # Internals

    def _resolve(self, outcome: Outcome):
        self._outcome = outcome
        self._state = SessionState.RESOLVED

    def _clear(self):
        self._sequence = []
        self._outcome = None
        self._state = SessionState.IDLE

    def _schedule_dismissal(self):
        self._cancel_dismissal()
        self._dismiss_task = self.scheduler.schedule(self.dismiss_delay, self._auto_dismiss)

    def _cancel_dismissal(self):
        if self._dismiss_task is not None:
            self._dismiss_task.cancel()
            self._dismiss_task = None

    def _auto_dismiss(self):
        self._dismiss_task = None
        if self._state != SessionState.RESOLVED:
            return

        self._clear()
        self._notify("auto_dismissed")

    def _notify(self, event: str):
        snapshot = self.snapshot(event)
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                self.logger.error(f"Session listener failed: {e}")
