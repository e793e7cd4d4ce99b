"""Logging configuration for command line use."""

import logging

from rich.console import Console
from rich.logging import RichHandler

logger = logging.getLogger("stylewatch")


def setup_logging(level: str = "INFO", console: Console | None = None) -> None:
    """Send stylewatch logs to a Rich handler at ``level``.

    Calling again replaces the previously installed handler.
    """
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        log_time_format="%H:%M:%S",
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = False
