"""
Activity Tracker - Logging
Coloured console output plus a rotating log file shared by every module.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# 5MB per file, keep last 5 backups
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 5


def get_log_dir() -> str:
    """LOG_DIR from the environment, else backend/logs."""
    return os.getenv("LOG_DIR") or os.path.join(os.path.dirname(__file__), "logs")


class LevelColourFormatter(logging.Formatter):
    """Colours the whole line by level when writing to a terminal."""

    COLOURS = {
        logging.DEBUG: "\x1b[38;20m",
        logging.INFO: "\x1b[34;20m",
        logging.WARNING: "\x1b[33;20m",
        logging.ERROR: "\x1b[31;20m",
        logging.CRITICAL: "\x1b[31;1m",
    }
    RESET = "\x1b[0m"

    def __init__(self, use_colour: bool = True):
        super().__init__(LOG_FORMAT + " (%(filename)s:%(lineno)d)", datefmt=DATE_FORMAT)
        self.use_colour = use_colour

    def format(self, record):
        line = super().format(record)
        if not self.use_colour:
            return line
        return f"{self.COLOURS.get(record.levelno, '')}{line}{self.RESET}"


def _supports_colour(stream) -> bool:
    return hasattr(stream, "isatty") and stream.isatty() and "NO_COLOR" not in os.environ


def setup_logger(
    name: str = "ActivityTracker",
    level: int = logging.INFO,
    filename: str = "tracker.log"
) -> logging.Logger:
    """Configures and returns a logger instance"""

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Prevent duplicate handlers if function is called multiple times
    if logger.hasHandlers():
        return logger

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(LevelColourFormatter(_supports_colour(sys.stdout)))
    logger.addHandler(console_handler)

    log_dir = get_log_dir()
    os.makedirs(log_dir, exist_ok=True)
    file_handler = RotatingFileHandler(
        os.path.join(log_dir, filename),
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUPS,
        encoding="utf-8",
        delay=True,
    )
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(file_handler)

    return logger


def set_level(level_name: str) -> None:
    """Apply a level name such as 'DEBUG' (SERVER_LOG_LEVEL) to the shared logger."""
    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        logger.warning(f"Unknown log level '{level_name}', keeping {logging.getLevelName(logger.level)}")
        return
    logger.setLevel(level)


# Global logger instance
logger = setup_logger()
