"""Logging for the identity service: one named logger writing to stdout."""

import logging
import sys
from typing import Optional

from identity_service.config import settings


LOGGER_NAME = "identity_service"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _resolve_level(level: Optional[str]) -> int:
    name = (level or settings.LOG_LEVEL).upper()
    return getattr(logging, name, logging.INFO)


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Configure and return the service logger.

    Args:
        level: Level name such as "DEBUG"; defaults to ``settings.LOG_LEVEL``.
            Calling again only changes the level, the stdout handler is added once.
    """
    numeric_level = _resolve_level(level)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(numeric_level)

    handler = next((h for h in logger.handlers if h.get_name() == LOGGER_NAME), None)
    if handler is None:
        handler = logging.StreamHandler(sys.stdout)
        handler.set_name(LOGGER_NAME)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(handler)
    handler.setLevel(numeric_level)

    logger.debug(f"Logging configured with level: {logging.getLevelName(numeric_level)}")
    return logger


logger = setup_logging()
