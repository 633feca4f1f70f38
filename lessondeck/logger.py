"""Logging configuration for lessondeck.

All modules log through the single package logger exported here. The level is
read from ``LOG_LEVEL`` (default ``INFO``) and can be changed at runtime with
``logger.setLevel``.
"""

import logging
import os
from typing import Optional


def setup_logger(name: str = "lessondeck", level: Optional[str] = None) -> logging.Logger:
    """Create (or return) the named logger with a console handler attached.

    Args:
        name: Logger name
        level: Logging level name; falls back to ``LOG_LEVEL`` from the environment

    Returns:
        Configured ``logging.Logger`` instance
    """
    log = logging.getLogger(name)

    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    log.setLevel(log_level)

    # Add console handler if not already present
    if not log.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter("[%(levelname)s %(name)s] %(message)s"))
        log.addHandler(handler)

    return log


logger = setup_logger()
