"""ANSI color utilities for terminal output.

Provides color constants and helper functions for colorized terminal output
with graceful degradation in non-TTY environments.
"""

from deploydeck.lib.ui.terminal import is_tty


class ANSIColors:
    """ANSI color escape codes for terminal output.

    Attributes:
        GREEN: Bright green (healthy states, success).
        RED: Bright red (failures).
        YELLOW: Bright yellow (degraded states, warnings).
        BLUE: Bright blue (names and labels).
        GRAY: Dim gray (secondary details such as unit file paths).
        RESET: Reset code to restore default terminal color.
    """

    GREEN = "\033[92m"
    RED = "\033[91m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    GRAY = "\033[90m"
    RESET = "\033[0m"


def colorize(text: str, color: str, force_tty: bool | None = None) -> str:
    """Apply ANSI color codes to text if in TTY mode.

    Args:
        text: Text to colorize.
        color: ANSI color code to apply (e.g., ANSIColors.GREEN).
        force_tty: Override TTY detection (for testing). None uses auto-detection.

    Returns:
        Colorized text if in TTY mode, plain text otherwise.
    """
    use_colors = force_tty if force_tty is not None else is_tty()
    if not use_colors:
        return text
    return f"{color}{text}{ANSIColors.RESET}"


def highlight_state(
    value: str, healthy: str, force_tty: bool | None = None
) -> str:
    """Color a systemd state green when it equals the healthy value, else yellow.

    Example:
        >>> highlight_state("active", "active", force_tty=False)
        'active'
    """
    color = ANSIColors.GREEN if value == healthy else ANSIColors.YELLOW
    return colorize(value, color, force_tty=force_tty)
