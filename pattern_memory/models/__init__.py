"""
Data models for pattern memory sessions
"""

from .session import SessionStatistics, SessionSnapshot, remaining_patterns

__all__ = ['SessionStatistics', 'SessionSnapshot', 'remaining_patterns']
