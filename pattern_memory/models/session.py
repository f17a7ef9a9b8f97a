"""
Session statistics and state snapshot models
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Optional, Tuple
from datetime import datetime

from ..interfaces import SessionState, Outcome, TOTAL_PATTERNS


@dataclass
class SessionStatistics:
    """Running counters for a pattern test session"""
    tested_count: int = 0
    invalid_count: int = 0

    @classmethod
    def from_history(cls, rejected_count: int) -> 'SessionStatistics':
        """Every stored rejection counts as one tested and one invalid pattern"""
        return cls(tested_count=rejected_count, invalid_count=rejected_count)

    def record_invalid(self):
        self.tested_count += 1
        self.invalid_count += 1

    def record_valid(self):
        self.tested_count += 1

    def clear(self):
        self.tested_count = 0
        self.invalid_count = 0

    def to_dict(self) -> Dict[str, int]:
        return {"tested": self.tested_count, "invalid": self.invalid_count}


def remaining_patterns(rejected_count: int) -> int:
    """Informational estimate of patterns left to try"""
    return TOTAL_PATTERNS - rejected_count


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of the session pushed to subscribers after each transition"""
    state: SessionState
    sequence: Tuple[int, ...]
    outcome: Optional[Outcome]
    tested_count: int
    invalid_count: int
    rejected_count: int
    dismissal_pending: bool = False
    event: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def remaining(self) -> int:
        return remaining_patterns(self.rejected_count)

    @property
    def awaiting_validation(self) -> bool:
        return self.state == SessionState.AWAITING_VALIDATION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "sequence": list(self.sequence),
            "outcome": self.outcome.value if self.outcome else None,
            "stats": {"tested": self.tested_count, "invalid": self.invalid_count},
            "remaining": self.remaining,
            "dismissal_pending": self.dismissal_pending,
            "event": self.event,
            "timestamp": self.timestamp.isoformat()
        }
