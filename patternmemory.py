#!/usr/bin/env python3
"""
Pattern Memory - Main CLI Entry Point

This script provides the command-line interface for systematically testing
Android unlock patterns until the forgotten one is found.
"""

import sys
import os

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from pattern_memory.ui.cli import main

if __name__ == '__main__':
    sys.exit(main())
