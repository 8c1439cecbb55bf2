"""Logging configuration with Rich formatting.

Provides setup_logging() for app initialization and get_logger() for module-level loggers.
"""

import logging
from typing import Optional
from rich.logging import RichHandler

NOISY_LOGGERS = ("httpx", "slack_sdk", "slack_bolt", "openai", "anthropic")


def setup_logging(level: Optional[str] = None, verbose: bool = False):
    if verbose:
        level = "DEBUG"
    elif level is None:
        from .config import get_settings
        level = get_settings().LOG_LEVEL

    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True)],
        force=True,
    )

    # Quiet down some noisy libraries
    if verbose:
        logging.getLogger(__name__).debug("verbose mode enabled")
    else:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str):
    return logging.getLogger(name)
