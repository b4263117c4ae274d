"""
Logging setup for Lethe Sync.

Components never configure logging themselves; they take a logger argument
(defaulting to their module logger). The app calls setup_logging() once.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

LOGGER_NAME = "lethe_sync"
LOG_FORMAT = "[%(asctime)s] %(message)s"
LOG_DATEFMT = "%H:%M:%S"


def setup_logging(log_path: Optional[Path] = None, verbose: bool = False, console: bool = False) -> logging.Logger:
    """
    Configure the package logger.

    Args:
        log_path: Append-mode log file; skipped if None or not writable
        verbose: Log DEBUG instead of INFO
        console: Also log to stderr (the progress display owns stdout)

    Returns:
        The configured "lethe_sync" logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)

    if console:
        stream = logging.StreamHandler(sys.stderr)
        stream.setFormatter(formatter)
        logger.addHandler(stream)

    if log_path is not None:
        try:
            file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        except OSError as e:
            print(f"Warning: could not open log file {log_path}: {e}", file=sys.stderr)
        else:
            file_handler.setFormatter(formatter)
            file_handler.stream.write(
                f"\n=== Lethe Sync started at {datetime.now():%Y-%m-%d %H:%M:%S} ===\n"
            )
            logger.addHandler(file_handler)

    if not logger.handlers:
        logger.addHandler(logging.NullHandler())
    logger.propagate = False
    return logger
