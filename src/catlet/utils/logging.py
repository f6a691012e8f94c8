"""Logging utilities."""

import logging
import sys
from typing import Optional, TextIO


# Held at WARNING unless DEBUG is requested
NOISY_LOGGERS = ("asyncio", "httpx", "httpcore")


def setup_logging(level: str = "INFO", stream: Optional[TextIO] = None):
    """Configure the root logger for catlet commands.

    Logs go to stderr by default so command output on stdout stays
    machine readable. Third-party loggers are held at WARNING unless
    DEBUG is requested.
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        handlers=[logging.StreamHandler(stream or sys.stderr)],
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if log_level <= logging.DEBUG else logging.WARNING)
