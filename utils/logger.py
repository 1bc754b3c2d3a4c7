# utils/logger.py
import logging
import os
import sys
from config.paths import LOG_PATH

# Ensure directory exists
LOG_PATH.parent.mkdir(parents=True, exist_ok=True)

logger = logging.getLogger("schedule")
logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())

# Prevent duplicate handlers if imported multiple times
if not logger.handlers:
    # File handler
    file_handler = logging.FileHandler(LOG_PATH, encoding="utf-8")
    file_formatter = logging.Formatter(
        "%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    file_handler.setFormatter(file_formatter)

    # Stream handler (stdout -> docker logs)
    stream_handler = logging.StreamHandler(sys.stdout)
    stream_formatter = logging.Formatter("[%(levelname)s] %(message)s")
    stream_handler.setFormatter(stream_formatter)

    # Add both handlers
    logger.addHandler(file_handler)
    logger.addHandler(stream_handler)


def get_logger(name: str) -> logging.Logger:
    """Return a child of the shared "schedule" logger, e.g. "schedule.scheduler.solver"."""
    return logger.getChild(name)
