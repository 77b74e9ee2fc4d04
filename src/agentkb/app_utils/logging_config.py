"""Logging configuration for the application."""

import logging
import os
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: Optional[str] = None) -> int:
    """Configure root logging to stdout.

    The level comes from ``level`` or the LOG_LEVEL environment variable
    (default: INFO). Returns the numeric level applied.
    """
    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_level_int = getattr(logging, log_level, logging.INFO)

    logging.basicConfig(
        level=log_level_int,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # aiohttp access logs are noise at INFO
    logging.getLogger("aiohttp.access").setLevel(max(log_level_int, logging.WARNING))
    return log_level_int
