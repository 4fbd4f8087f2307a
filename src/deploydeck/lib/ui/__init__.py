"""UI utilities for terminal output.

This module provides shared utilities for terminal interaction, including:
- TTY detection for adaptive output formatting
- ANSI color support with graceful degradation
- Status value highlighting used by the status and watch commands
"""

from deploydeck.lib.ui.colors import ANSIColors, colorize, highlight_state
from deploydeck.lib.ui.terminal import is_tty

__all__ = [
    "ANSIColors",
    "colorize",
    "highlight_state",
    "is_tty",
]
