"""
wavesplit.logging - Logging setup for the command line.

Package loggers all hang off the "wavesplit" logger. The CLI attaches a
rich handler writing to stderr so log lines do not break up the progress
bar on stdout.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

logger = logging.getLogger("wavesplit")


def log_level(verbose: bool = False, quiet: bool = False) -> int:
    """Map the CLI flags to a level; verbose wins over quiet."""
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.ERROR
    return logging.WARNING


def configure_logging(
    verbose: bool = False,
    quiet: bool = False,
    console: Console | None = None,
) -> RichHandler:
    """Configure logging for the wavesplit package.

    Safe to call more than once: the handler from an earlier call is
    replaced rather than stacked.

    Args:
        verbose: Show debug output, including per-file open/close messages
        quiet: Only show errors (overlap warnings and ignored channels are hidden)
        console: Console to log to (default: a new stderr console)

    Returns:
        The installed handler
    """
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_time=False,
        show_path=verbose,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(log_level(verbose, quiet))
    return handler
