"""Structured logging for the simulation pipeline.

Batch runs write JSON lines next to their exported rasters, one record per
engine step, formation warning and export, each tagged with the job index
and calibration mode it belongs to.
"""

import json
import logging
import sys
import time
from pathlib import Path
from typing import Any


class JSONFormatter(logging.Formatter):
    """Format log records as JSON lines."""

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as JSON."""
        log_data = {
            "timestamp": time.time(),
            "level": record.levelname,
            "name": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }

        # Structured payload attached by StructuredLogger
        if hasattr(record, "extra_data"):
            log_data.update(record.extra_data)

        return json.dumps(log_data, default=str)


def setup_logging(log_path: Path | None = None, level: int = logging.INFO) -> None:
    """Setup structured logging.

    Args:
        log_path: Optional path for JSON lines log file
        level: Logging level
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
    )
    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    if log_path:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(level)
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)


def get_logger(name: str) -> "StructuredLogger":
    """Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        StructuredLogger instance
    """
    return StructuredLogger(logging.getLogger(name))


class StructuredLogger:
    """Wrapper for adding structured data to log messages.

    Context bound with :meth:`bind` (job index, calibration mode) is merged
    into every payload; per-call data wins on key clashes.
    """

    def __init__(self, logger: logging.Logger, context: dict[str, Any] | None = None):
        self.logger = logger
        self.context = dict(context or {})

    def bind(self, **context: Any) -> "StructuredLogger":
        """Return a logger that adds ``context`` to every record."""
        return StructuredLogger(self.logger, {**self.context, **context})

    def _log(self, level: int, msg: str, data: dict[str, Any] | None = None) -> None:
        payload = {**self.context, **(data or {})}
        extra = {"extra_data": payload} if payload else {}
        self.logger.log(level, msg, extra=extra)

    def debug(self, msg: str, data: dict[str, Any] | None = None) -> None:
        self._log(logging.DEBUG, msg, data)

    def info(self, msg: str, data: dict[str, Any] | None = None) -> None:
        self._log(logging.INFO, msg, data)

    def warning(self, msg: str, data: dict[str, Any] | None = None) -> None:
        self._log(logging.WARNING, msg, data)

    def error(self, msg: str, data: dict[str, Any] | None = None) -> None:
        self._log(logging.ERROR, msg, data)


__all__ = [
    "JSONFormatter",
    "setup_logging",
    "get_logger",
    "StructuredLogger",
]
