"""
Configure logging for the application.

This module provides a consistent logging configuration across the entire
application, ensuring log messages are formatted correctly and directed
to the appropriate outputs (console, rotating file).
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from voicerelay.config.constants import LOGGER_NAME

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Log file configuration
MAX_LOG_SIZE = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 5


def _log_level() -> int:
    level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def _file_output_enabled() -> bool:
    return os.getenv("LOG_FILE_OUTPUT", "true").strip().lower() not in ("false", "0", "no")


def configure_logging(
    name: str = LOGGER_NAME,
    file_path: str = None,
    log_filename: str = "voicerelay.log",
) -> logging.Logger:
    """
    Configure a named logger with console and file handlers.

    Level comes from ``LOG_LEVEL`` and the log directory from ``LOG_DIR``
    (default ``logs/``). File output can be switched off with
    ``LOG_FILE_OUTPUT=false``.

    Returns:
        logging.Logger: The configured logger instance
    """
    log_dir = Path(file_path or os.getenv("LOG_DIR", "logs"))

    logger = logging.getLogger(name)
    logger.setLevel(_log_level())

    # Remove existing handlers if any
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if _file_output_enabled():
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_dir / log_filename,
                maxBytes=MAX_LOG_SIZE,
                backupCount=BACKUP_COUNT,
                encoding="utf-8",
            )
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning(f"Could not set up file logging: {e}")

    # Prevent log propagation to root logger
    logger.propagate = False

    return logger
