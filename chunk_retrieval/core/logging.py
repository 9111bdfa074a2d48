"""Logging setup based on loguru."""

import sys
from typing import Optional

from loguru import logger

from chunk_retrieval.core.config import Settings, get_settings

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Replace the default loguru sink with one driven by settings."""
    settings = settings or get_settings()

    level = settings.log_level.upper()
    if settings.mvdb_enable_debug_logging or settings.app_debug:
        level = "DEBUG"

    logger.remove()
    logger.add(sys.stderr, level=level, format=LOG_FORMAT, backtrace=False)
    logger.debug(f"Logging configured at level {level}")
