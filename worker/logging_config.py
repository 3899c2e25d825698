"""
Logging for the listing worker.

One named logger ("listing_worker") carries job lifecycle and browser
session lines to the console and to two rotating files: everything at
DEBUG and above, and a separate errors-only file.
"""

import sys
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from worker.config import get_config

WORKER_LOGGER = "listing_worker"

CONSOLE_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(funcName)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5


class ColoredFormatter(logging.Formatter):
    """Colors the level name when writing to a terminal."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, fmt: str, datefmt: Optional[str] = None, use_color: bool = True):
        super().__init__(fmt, datefmt)
        self.use_color = use_color

    def format(self, record):
        if not self.use_color:
            return super().format(record)
        # Work on a copy; the file handlers format the same record
        colored = logging.makeLogRecord(record.__dict__)
        color = self.LEVEL_COLORS.get(record.levelno, "")
        colored.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(colored)


def _rotating_handler(path: Path, level: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logging(
    name: str = WORKER_LOGGER,
    log_dir: Optional[Path] = None,
    level: Optional[str] = None,
) -> logging.Logger:
    """Attach console and rotating-file handlers to the named logger once.

    Directory and level default to LOG_DIR and LOG_LEVEL from the worker config.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    config = get_config()
    logger.setLevel(getattr(logging, (level or config.LOG_LEVEL).upper(), logging.INFO))
    logger.propagate = False

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(ColoredFormatter(CONSOLE_FORMAT, DATE_FORMAT, use_color=sys.stdout.isatty()))
    logger.addHandler(console)

    directory = Path(log_dir or config.LOG_DIR)
    directory.mkdir(parents=True, exist_ok=True)
    logger.addHandler(_rotating_handler(directory / f"{name}.log", logging.DEBUG))
    logger.addHandler(_rotating_handler(directory / f"{name}_errors.log", logging.ERROR))
    return logger


logger = setup_logging()


def log_job_event(job_id: str, marketplace: str, status: str, error: Optional[str] = None):
    """One line per job state transition."""
    if error:
        logger.error(f"Job {job_id} [{marketplace or '?'}] failed: {error}")
    else:
        logger.info(f"Job {job_id} [{marketplace or '?'}] -> {status}")


def log_browser_event(session_id: str, event: str, details: Optional[str] = None):
    suffix = f": {details}" if details else ""
    logger.debug(f"Browser [{session_id}] {event}{suffix}")
