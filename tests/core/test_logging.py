"""
Tests for evesync structured logging.
"""

from __future__ import annotations

import json
import logging
import sys

from evesync.core.logging import SyncFormatter, get_logger, reset_logging, set_log_level


def _record(name: str = "evesync.sync.module", level: int = logging.INFO, **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name=name,
        level=level,
        pathname="test.py",
        lineno=10,
        msg="Updated %s",
        args=("key",),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestSyncFormatter:
    def test_text_format_basic(self):
        """Text format includes level, short module name and message."""
        formatted = SyncFormatter(json_output=False).format(_record())

        assert formatted.startswith("[evesync INFO] [module]")
        assert "Updated key" in formatted

    def test_text_format_with_exception(self):
        try:
            raise ValueError("boom")
        except ValueError:
            exc_info = sys.exc_info()

        record = _record(level=logging.ERROR)
        record.exc_info = exc_info

        formatted = SyncFormatter().format(record)
        assert "ValueError: boom" in formatted

    def test_json_format_includes_extras(self):
        data = json.loads(SyncFormatter(json_output=True).format(_record(key_id=123)))

        assert data["level"] == "INFO"
        assert data["logger"] == "evesync.sync.module"
        assert data["message"] == "Updated key"
        assert data["key_id"] == 123
        assert "lineno" not in data


class TestGetLogger:
    def test_logger_is_cached(self):
        assert get_logger("evesync.test.cached") is get_logger("evesync.test.cached")

    def test_logger_uses_settings_level(self, monkeypatch):
        monkeypatch.setenv("EVESYNC_LOG_LEVEL", "INFO")
        from evesync.core.config import reset_settings

        reset_settings()
        logger = get_logger("evesync.test.level")
        assert logger.level == logging.INFO
        assert logger.propagate is False

    def test_set_log_level_applies_to_all(self):
        a = get_logger("evesync.test.a")
        b = get_logger("evesync.test.b")
        set_log_level(logging.ERROR)
        assert a.level == logging.ERROR
        assert b.level == logging.ERROR

    def test_reset_logging_restores_propagation(self):
        logger = get_logger("evesync.test.reset")
        reset_logging()
        assert logger.propagate is True
        assert logger.level == logging.NOTSET
