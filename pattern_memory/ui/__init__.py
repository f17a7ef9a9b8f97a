"""
User Interface components for Pattern Memory
"""

from .cli import PatternMemoryCLI, __version__

# GUI components (optional, requires PyQt5)
try:
    from .gui import (
        PatternMemoryWindow, PatternGridWidget, QtScheduler, QtTask
    )
    GUI_AVAILABLE = True
    __all__ = [
        'PatternMemoryCLI', 'PatternMemoryWindow', 'PatternGridWidget',
        'QtScheduler', 'QtTask'
    ]
except ImportError:
    GUI_AVAILABLE = False
    __all__ = ['PatternMemoryCLI']
