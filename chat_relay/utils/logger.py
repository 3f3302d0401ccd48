"""Chat Relay logging

Console logging through rich (optional plain fallback) plus an optional
log file. Only the package root logger carries handlers; module loggers
are children of it and propagate.
"""

import logging
import sys
from typing import Optional

from rich.logging import RichHandler

ROOT_LOGGER = "chat_relay"

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(
    name: Optional[str] = ROOT_LOGGER,
    level: Optional[str] = "info",
    log_file: Optional[str] = None,
    enable_rich: Optional[bool] = True,
) -> logging.Logger:
    """Configure a logger

    Replaces any handlers already attached to the named logger.

    Args:
        name: Logger name
        level: Log level name
        log_file: Optional log file path
        enable_rich: Use rich console output instead of a plain stream handler

    Returns:
        The configured logger
    """
    level = (level or "INFO").upper()
    enable_rich = enable_rich if enable_rich is not None else True

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers.clear()

    if enable_rich:
        rich_handler = RichHandler(
            rich_tracebacks=True, show_time=True, show_level=True, show_path=False
        )
        rich_handler.setLevel(level)
        logger.addHandler(rich_handler)
    else:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
        logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """Get a logger

    Names outside the package namespace are nested under it so that the
    handlers installed by configure_logging() apply.

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
