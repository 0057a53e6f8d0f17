"""Logging setup shared by all modules."""

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logger(name: str = "lusocards", level: Optional[str] = None) -> logging.Logger:
    """
    Get a configured logger.

    The package root logger gets a single stream handler; module loggers
    (``setup_logger(__name__)``) propagate to it.

    Args:
        name: Logger name, usually ``__name__``
        level: Level name for the root package logger (defaults to Config.LOG_LEVEL)

    Returns:
        Logger instance
    """
    root_name = name.split(".", 1)[0]
    root = logging.getLogger(root_name)

    if not any(getattr(h, "_lusocards", False) for h in root.handlers):
        if level is None:
            from ..config import Config
            level = Config.LOG_LEVEL
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._lusocards = True
        root.addHandler(handler)
        root.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    return logging.getLogger(name)
