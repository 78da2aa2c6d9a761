# toybox/core/logs.py
import os
import sys

from loguru import logger

from .config import Settings

_configured_paths: set[str] = set()


def configure_logging(settings: Settings) -> str:
    """
    Route loguru output to stderr at the configured level plus a rotating
    file under LOG_DIR. Returns the log file path.
    """
    log_dir = os.path.abspath(settings.LOG_DIR)
    os.makedirs(log_dir, exist_ok=True)
    log_path = os.path.join(log_dir, "toybox.log")

    if log_path not in _configured_paths:
        logger.remove()
        logger.add(sys.stderr, level=settings.LOG_LEVEL)
        logger.add(log_path, level=settings.LOG_LEVEL, rotation="10 MB", retention="10 days")
        _configured_paths.add(log_path)
    return log_path
