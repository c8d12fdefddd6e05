"""Shared logger setup for StockWatch.

Every module asks for ``get_logger(__name__)``. Records go to stderr and to
``$STOCKWATCH_LOG_DIR/stockwatch.log`` (rotated at 1 MB, three backups).
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Capped at WARNING; the scheduler logs its own tick summaries.
NOISY_LIBRARIES = ("apscheduler.executors", "apscheduler.scheduler", "urllib3")


def log_file_path() -> str:
    return os.path.join(os.getenv("STOCKWATCH_LOG_DIR", "logs"), "stockwatch.log")


def log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").upper()


def _quiet_libraries() -> None:
    for name in NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Return the ``name`` logger, attaching StockWatch handlers on first use."""
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    level = log_level()
    path = log_file_path()
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    formatter = logging.Formatter(LOG_FORMAT)

    file_handler = RotatingFileHandler(path, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
    console_handler = logging.StreamHandler()
    for handler in (file_handler, console_handler):
        handler.setFormatter(formatter)
        handler.setLevel(level)
        logger.addHandler(handler)

    logger.setLevel(level)
    logger.propagate = False
    _quiet_libraries()
    return logger
