"""
Logging setup for command-line entry points.

Library modules only create loggers; handlers are installed here.
"""

import logging
import os
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%H:%M:%S"

# Environment variable for log level
LOG_LEVEL_ENV = "AI_VIDEO_CACHE_LOG_LEVEL"


def configure_logging(level: Optional[Union[int, str]] = None) -> None:
    """Install a stream handler on the package logger.

    Args:
        level: Log level; defaults to ``$AI_VIDEO_CACHE_LOG_LEVEL`` or WARNING
    """
    if level is None:
        level = os.environ.get(LOG_LEVEL_ENV, "WARNING")
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.WARNING)

    logger = logging.getLogger("ai_video_cache")
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        logger.addHandler(handler)
