"""
Pattern engine for Android 3x3 unlock patterns

Turns raw dot hits into valid Android pattern sequences (including the
skipped-dot auto-include rule), encodes them into canonical keys and
classifies finished drawings against the rejected history.
"""

import logging
from typing import List, Dict, Any, Optional, Iterable, Container, Sequence
from dataclasses import dataclass

from ..interfaces import (
    Classification, PatternEngineError, MIN_PATTERN_LENGTH
)


GRID_SIZE = 3
TOTAL_DOTS = GRID_SIZE * GRID_SIZE
CENTER_DOT = 4
KEY_SEPARATOR = "-"


@dataclass(frozen=True)
class Dot:
    """A position in the 3x3 pattern grid"""
    index: int  # 0-8, row-major from the top-left corner

    def __post_init__(self):
        if isinstance(self.index, bool) or not isinstance(self.index, int):
            raise PatternEngineError(f"Dot index must be an integer: {self.index!r}")
        if not (0 <= self.index < TOTAL_DOTS):
            raise PatternEngineError(f"Invalid dot index: {self.index}")

    @property
    def row(self) -> int:
        return self.index // GRID_SIZE

    @property
    def col(self) -> int:
        return self.index % GRID_SIZE

    @classmethod
    def from_position(cls, row: int, col: int) -> 'Dot':
        """Create a Dot from grid coordinates"""
        if not (0 <= row < GRID_SIZE and 0 <= col < GRID_SIZE):
            raise PatternEngineError(f"Invalid dot coordinates: ({row}, {col})")
        return cls(row * GRID_SIZE + col)

    def to_dict(self) -> Dict[str, int]:
        return {"index": self.index, "row": self.row, "col": self.col}

    def __str__(self) -> str:
        return f"Dot({self.row},{self.col})[{self.index}]"


def is_valid_dot(value: Any) -> bool:
    """Check if value is a usable dot index"""
    return (isinstance(value, int) and not isinstance(value, bool)
            and 0 <= value < TOTAL_DOTS)


def get_middle_dot(a: int, b: int) -> Optional[int]:
    """
    Return the dot lying between a and b when the jump skips over one

    Only straight gaps count: two rows apart in one column, two columns
    apart in one row, or two apart on both axes (always through the centre).
    """
    first, second = Dot(a), Dot(b)
    d_row = abs(second.row - first.row)
    d_col = abs(second.col - first.col)

    if d_row == 2 and d_col == 0:
        return Dot.from_position(1, first.col).index
    if d_col == 2 and d_row == 0:
        return Dot.from_position(first.row, 1).index
    if d_row == 2 and d_col == 2:
        return CENTER_DOT
    return None


@dataclass
class AndroidPattern:
    """A completed Android unlock pattern"""
    sequence: List[int]

    def __post_init__(self):
        self.sequence = [Dot(i).index for i in self.sequence]
        if len(self.sequence) < MIN_PATTERN_LENGTH:
            raise PatternEngineError(
                f"Pattern must have at least {MIN_PATTERN_LENGTH} dots")
        if len(self.sequence) > TOTAL_DOTS:
            raise PatternEngineError(f"Pattern cannot have more than {TOTAL_DOTS} dots")
        if len(set(self.sequence)) != len(self.sequence):
            raise PatternEngineError("Pattern cannot have duplicate dots")

    @property
    def key(self) -> str:
        return encode_pattern(self.sequence)

    def is_valid_pattern(self) -> bool:
        """Check that no segment jumps over an unvisited dot"""
        for i in range(len(self.sequence) - 1):
            middle = get_middle_dot(self.sequence[i], self.sequence[i + 1])
            if middle is not None and middle not in self.sequence[:i + 1]:
                return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sequence": list(self.sequence),
            "key": self.key,
            "is_valid": self.is_valid_pattern()
        }

    def __len__(self) -> int:
        return len(self.sequence)

    def __str__(self) -> str:
        return f"Pattern[{'->'.join(map(str, self.sequence))}]"


def encode_pattern(sequence: Sequence[int]) -> str:
    """Encode a dot sequence as its canonical key, e.g. [0, 1, 2] -> 0-1-2"""
    return KEY_SEPARATOR.join(str(Dot(i).index) for i in sequence)


def decode_pattern(key: str) -> List[int]:
    """Decode a pattern key back into its dot sequence"""
    if not isinstance(key, str) or not key:
        raise PatternEngineError(f"Invalid pattern key: {key!r}")

    sequence = []
    for part in key.split(KEY_SEPARATOR):
        if not part.isdecimal() or part != str(int(part)):
            raise PatternEngineError(f"Invalid pattern key: {key!r}")
        sequence.append(Dot(int(part)).index)

    if len(set(sequence)) != len(sequence):
        raise PatternEngineError(f"Pattern key repeats a dot: {key!r}")
    return sequence


class PatternEngine:
    """
    Stateless pattern logic used by the session controller

    All operations work on plain lists of dot indices and never mutate
    their inputs.
    """

    def __init__(self, min_length: int = MIN_PATTERN_LENGTH):
        if not (1 <= min_length <= TOTAL_DOTS):
            raise PatternEngineError(f"Invalid minimum pattern length: {min_length}")
        self.min_length = min_length
        self.logger = logging.getLogger(__name__)

    def append_dot(self, sequence: Sequence[int], dot: int) -> List[int]:
        """
        Extend sequence with dot, auto-including a skipped middle dot

        A dot that is already part of the sequence is ignored and the
        sequence comes back unchanged.
        """
        Dot(dot)
        new_sequence = list(sequence)
        if dot in new_sequence:
            return new_sequence

        if new_sequence:
            middle = get_middle_dot(new_sequence[-1], dot)
            if middle is not None and middle not in new_sequence:
                new_sequence.append(middle)

        new_sequence.append(dot)
        return new_sequence

    def build(self, dots: Iterable[int]) -> List[int]:
        """Fold append_dot over raw dot hits, as a drag gesture would"""
        sequence: List[int] = []
        for dot in dots:
            sequence = self.append_dot(sequence, dot)
        return sequence

    def encode(self, sequence: Sequence[int]) -> str:
        return encode_pattern(sequence)

    def decode(self, key: str) -> List[int]:
        return decode_pattern(key)

    def is_complete(self, sequence: Sequence[int]) -> bool:
        return len(sequence) >= self.min_length

    def classify(self, sequence: Sequence[int], rejected: Container[str]) -> Classification:
        """Classify a finished drawing against the rejected-pattern keys"""
        if not self.is_complete(sequence):
            return Classification.TOO_SHORT

        key = self.encode(sequence)
        if key in rejected:
            self.logger.debug(f"Pattern {key} was already rejected")
            return Classification.DUPLICATE

        return Classification.PENDING
