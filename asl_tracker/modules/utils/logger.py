"""
Structured logging with timing and gesture event logging.
"""

import os
import logging
import logging.handlers
import time
from functools import wraps


def setup_logging(level="INFO", log_file=None, max_size_mb=10, backup_count=3):
    """Configure structured logging for the application."""
    console_format = "%(asctime)s  %(levelname)-5s  %(message)s"
    file_format = "%(asctime)s [%(levelname)-7s] %(name)-25s | %(message)s"
    date_format = "%H:%M:%S"

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    root_logger.handlers.clear()

    console = logging.StreamHandler()
    console.setLevel(root_logger.level)
    console.setFormatter(logging.Formatter(console_format, datefmt=date_format))
    root_logger.addHandler(console)

    # File handler (rotating)
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=backup_count,
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(file_format, datefmt=date_format))
        root_logger.addHandler(file_handler)

    return root_logger


class GestureLogger:
    """Specialized logger for commit and capture events."""

    def __init__(self):
        self.logger = logging.getLogger("gesture_events")

    def log_commit(self, commit_event, text_length=None):
        """Log a committed text edit."""
        self.logger.info(
            "Commit: %-10s | Edit: %-6s | Stability: %.2f | %s%s",
            commit_event.label,
            commit_event.edit.kind.value,
            commit_event.stability,
            "manual" if commit_event.manual else "auto",
            f" | Text length: {text_length}" if text_length is not None else "",
        )

    def log_capture(self, label, sample_id, burst=False):
        """Log a captured training sample."""
        self.logger.info(
            "Capture: %-10s | Sample: #%d | %s",
            label,
            sample_id,
            "burst" if burst else "single",
        )


def log_timing(func):
    """Decorator to log function execution time."""
    logger = logging.getLogger(func.__module__)

    @wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        result = func(*args, **kwargs)
        elapsed = (time.perf_counter() - start) * 1000
        logger.debug("%s took %.2fms", func.__name__, elapsed)
        return result

    return wrapper
