from __future__ import annotations

import logging
import os

from rich.console import Console
from rich.logging import RichHandler


LOG_LEVEL_ENV = "EDGESYNC_LOG_LEVEL"
THIRD_PARTY_LOGGERS = ("boto3", "botocore", "s3transfer", "urllib3")


def setup_logging(log_level: str | None = None, console: Console | None = None) -> logging.Logger:
    """Install a Rich handler on the ``edgesync`` logger.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR. Defaults to the
            ``EDGESYNC_LOG_LEVEL`` environment variable, then INFO.
        console: Console shared with the progress display so log lines
            render above live progress bars.

    Returns:
        The configured package logger.
    """
    if log_level is None:
        log_level = os.getenv(LOG_LEVEL_ENV, "INFO")
    level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger("edgesync")
    logger.setLevel(level)
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(console=console, show_path=False, rich_tracebacks=False, markup=False)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    logger.addHandler(handler)
    logger.propagate = False

    for name in THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger
