"""Terminal detection utilities."""

import sys


def is_tty() -> bool:
    """Check if stdout is connected to a terminal.

    Used to decide between colored output and plain text suitable for
    logs and pipes.

    Returns:
        True if stdout is a TTY (interactive terminal), False otherwise.
    """
    return sys.stdout.isatty()
