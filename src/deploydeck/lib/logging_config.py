"""Centralized logging configuration for DeployDeck.

Every module obtains its logger through get_logger(__name__); CLI commands
call setup_logging() once with the verbosity flags they were given.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are too chatty at DEBUG level
_NOISY_LOGGERS = ("asyncio",)


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Configure root logging for CLI usage.

    Args:
        verbose: Enable DEBUG level output
        quiet: Only show warnings and errors (ignored when verbose is set)
    """
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root.addHandler(handler)
    root.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """Return a module logger."""
    return logging.getLogger(name)
