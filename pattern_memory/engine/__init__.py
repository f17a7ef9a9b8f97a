"""
Pattern engine: Android grid rules, pattern keys and pointer geometry
"""

from .pattern_engine import (
    Dot, AndroidPattern, PatternEngine, get_middle_dot, encode_pattern,
    decode_pattern, is_valid_dot
)
from .geometry import DotLocator

__all__ = [
    'Dot', 'AndroidPattern', 'PatternEngine', 'get_middle_dot',
    'encode_pattern', 'decode_pattern', 'is_valid_dot', 'DotLocator'
]
