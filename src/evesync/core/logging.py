"""
evesync Structured Logging

Provides consistent logging across the evesync package with:
- Environment-based configuration via EVESYNC_LOG_LEVEL
- JSON-formatted output option for machine parsing
- Module-specific loggers

Usage:
    from evesync.core.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Key updated", extra={"key_id": 123})
"""

import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Optional

from .config import get_settings

# LogRecord attributes that are not user-supplied extras
_RESERVED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
        "message",
    }
)


class SyncFormatter(logging.Formatter):
    """
    Formats logs as human-readable text or as one JSON object per line.
    """

    def __init__(self, json_output: bool = False) -> None:
        super().__init__()
        self.json_output = json_output

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(timezone.utc).isoformat(timespec="seconds")

        if self.json_output:
            return self._format_json(record, timestamp)
        return self._format_text(record)

    def _format_text(self, record: logging.LogRecord) -> str:
        module = record.name.split(".")[-1]
        msg = f"[evesync {record.levelname}] [{module}] {record.getMessage()}"

        if record.exc_info:
            msg += "\n" + "".join(traceback.format_exception(*record.exc_info))

        return msg

    def _format_json(self, record: logging.LogRecord, timestamp: str) -> str:
        log_data: dict[str, Any] = {
            "timestamp": timestamp,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = "".join(traceback.format_exception(*record.exc_info))

        return json.dumps(log_data, default=str)


# Module-level logger cache
_loggers: dict[str, logging.Logger] = {}
_handler: Optional[logging.Handler] = None


def _get_handler() -> logging.Handler:
    """Get or create the shared stderr handler."""
    global _handler
    if _handler is None:
        _handler = logging.StreamHandler(sys.stderr)
        _handler.setFormatter(SyncFormatter(json_output=get_settings().log_json))
    return _handler


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for the given module name.

    Args:
        name: Module name (typically __name__)

    Returns:
        Configured logger instance
    """
    if name in _loggers:
        return _loggers[name]

    logger = logging.getLogger(name)
    logger.setLevel(get_settings().log_level_int)
    logger.addHandler(_get_handler())
    logger.propagate = False

    _loggers[name] = logger
    return logger


def set_log_level(level: int) -> None:
    """Dynamically set log level for all evesync loggers."""
    for logger in _loggers.values():
        logger.setLevel(level)


def reset_logging() -> None:
    """
    Reset all evesync loggers to default state.

    Restores propagation and NOTSET levels on every ``evesync.*`` logger and
    detaches the shared handler so pytest's caplog can capture records.
    Used by test fixtures to prevent cross-test logging pollution.
    """
    global _handler

    manager = logging.Logger.manager
    for name in list(manager.loggerDict.keys()):
        if name == "evesync" or name.startswith("evesync."):
            logger_or_placeholder = manager.loggerDict[name]
            if isinstance(logger_or_placeholder, logging.Logger):
                logger_or_placeholder.propagate = True
                logger_or_placeholder.setLevel(logging.NOTSET)

    for logger in _loggers.values():
        if _handler is not None:
            logger.removeHandler(_handler)

    _handler = None
