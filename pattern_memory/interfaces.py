"""
Core interfaces, enums and the exception hierarchy for pattern memory sessions
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional
from datetime import datetime
from enum import Enum


# Number of valid Android unlock patterns of length 4-9
TOTAL_PATTERNS = 389112

# Android requires at least four dots for a usable pattern
MIN_PATTERN_LENGTH = 4


class Classification(Enum):
    """Result of checking a finished drawing against the rejected history"""
    TOO_SHORT = "too_short"
    DUPLICATE = "duplicate"
    PENDING = "pending"


class SessionState(Enum):
    """States of the pattern test session"""
    IDLE = "idle"
    DRAWING = "drawing"
    AWAITING_VALIDATION = "awaiting_validation"
    RESOLVED = "resolved"


class Outcome(Enum):
    """How a tested pattern was resolved"""
    VALID = "valid"
    INVALID = "invalid"
    DUPLICATE = "duplicate"


class IKeyValueStore(ABC):
    """Capability interface for the storage backing the rejected-pattern set"""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the serialized value stored under key, or None"""
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store a serialized value under key"""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key if present"""
        pass


class ScheduledTask(ABC):
    """Handle for a delayed callback"""

    @abstractmethod
    def cancel(self) -> None:
        """Cancel the callback if it has not fired yet"""
        pass

    @property
    @abstractmethod
    def active(self) -> bool:
        """True while the callback is still pending"""
        pass


class IScheduler(ABC):
    """Interface for running a callback after a delay"""

    @abstractmethod
    def schedule(self, delay: float, callback: Callable[[], None]) -> ScheduledTask:
        """Run callback once after delay seconds"""
        pass


class PatternMemoryException(Exception):
    """Base exception for pattern memory operations"""

    def __init__(self, message: str, error_code: str):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.timestamp = datetime.now()


class PatternEngineError(PatternMemoryException):
    """Raised for invalid dots, sequences or pattern keys"""

    def __init__(self, message: str):
        super().__init__(message, "PATTERN_ENGINE_ERROR")


class PatternStoreError(PatternMemoryException):
    """Raised when a storage backend cannot read or write"""

    def __init__(self, message: str, key: str = None):
        super().__init__(message, "PATTERN_STORE_ERROR")
        self.key = key


class ExportError(PatternMemoryException):
    """Raised when the export artifact cannot be produced"""

    def __init__(self, message: str):
        super().__init__(message, "EXPORT_ERROR")


class ConfigError(PatternMemoryException):
    """Raised for unknown or badly typed configuration values"""

    def __init__(self, message: str, setting: str = None):
        super().__init__(message, "CONFIG_ERROR")
        self.setting = setting
