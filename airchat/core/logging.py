"""Logging configuration."""

import logging
import sys
from pathlib import Path
from typing import Optional

from airchat.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE = "airchat.log"

# Chatty third-party loggers and the level they are held at
_QUIET_LOGGERS = {
    "uvicorn": logging.INFO,
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "httpx": logging.WARNING,
    "openai": logging.WARNING,
    "websockets": logging.WARNING,
}


def setup_logging(level: Optional[str] = None, log_dir: Optional[str] = None) -> None:
    """Send application logs to stdout and to a file under the log directory.

    Safe to call more than once; handlers added by an earlier call are replaced.
    """
    log_level = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)
    directory = Path(log_dir or settings.LOG_DIR)
    directory.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
    handlers = [
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(directory / LOG_FILE),
    ]

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if getattr(handler, "_airchat", False):
            root_logger.removeHandler(handler)
            handler.close()
    for handler in handlers:
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        handler._airchat = True
        root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    for name, quiet_level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)
    if settings.ENVIRONMENT == "development" and log_level <= logging.DEBUG:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)
