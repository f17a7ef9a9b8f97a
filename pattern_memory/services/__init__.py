"""
Services package for pattern memory sessions
"""

from .pattern_store import (
    InMemoryStore,
    JsonFileStore,
    EncryptedFileStore,
    RejectedPatternStore,
    create_store
)
from .scheduler import ManualScheduler, ManualTask
from .session_controller import SessionController
from .exporter import PatternExporter

__all__ = [
    'InMemoryStore',
    'JsonFileStore',
    'EncryptedFileStore',
    'RejectedPatternStore',
    'create_store',
    'ManualScheduler',
    'ManualTask',
    'SessionController',
    'PatternExporter'
]
