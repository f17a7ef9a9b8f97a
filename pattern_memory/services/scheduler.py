"""
Cancellable delayed callbacks driven by an explicit clock

The session is single threaded, so delayed work (the auto-dismiss after a
result is shown) must run on the same event loop that delivers input. GUI
surfaces supply a scheduler backed by their own timers; the command line
and the tests use ManualScheduler and advance its clock explicitly.
"""

from typing import Callable, List

from ..interfaces import IScheduler, ScheduledTask


class ManualTask(ScheduledTask):
    """A pending callback owned by a ManualScheduler"""

    def __init__(self, due_at: float, callback: Callable[[], None]):
        self.due_at = due_at
        self.callback = callback
        self._cancelled = False
        self._fired = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def active(self) -> bool:
        return not (self._cancelled or self._fired)

    def fire(self):
        self._fired = True
        self.callback()


class ManualScheduler(IScheduler):
    """Scheduler whose time only moves when advance() is called"""

    def __init__(self):
        self.now = 0.0
        self._tasks: List[ManualTask] = []

    def schedule(self, delay: float, callback: Callable[[], None]) -> ScheduledTask:
        task = ManualTask(self.now + max(0.0, delay), callback)
        self._tasks.append(task)
        return task

    def advance(self, seconds: float) -> int:
        """Move the clock forward and run every task that became due"""
        self.now += seconds
        return self.run_due()

    def run_due(self) -> int:
        due = sorted((t for t in self._tasks if t.active and t.due_at <= self.now),
                     key=lambda t: t.due_at)
        self._tasks = [t for t in self._tasks if t.active and t not in due]

        for task in due:
            # An earlier callback may have cancelled a later one
            if task.active:
                task.fire()
        return len(due)

    def run_all(self) -> int:
        """Run every pending task regardless of its due time"""
        pending = [t.due_at for t in self._tasks if t.active]
        if not pending:
            return 0
        return self.advance(max(0.0, max(pending) - self.now))

    @property
    def pending(self) -> int:
        return sum(1 for t in self._tasks if t.active)
