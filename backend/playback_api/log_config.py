"""Process-wide logging setup."""
from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
DATE_FORMAT = "%H:%M:%S"


def configure_logging(level: str | int = "INFO") -> None:
    """Apply the service log format; call once at process start."""

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=DATE_FORMAT)
    # httpx logs every request at INFO, which drowns out segment proxying.
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
