"""Tests for logging configuration and log file persistence."""

import logging
from datetime import datetime, timedelta

import pytest

from services.logging import (
    LOG_PREFIX,
    DailyFileHandler,
    cleanup_old_logs,
    configure_logging,
    get_log_file_path,
    load_recent_logs,
)
from utils import get_logs_dir


@pytest.fixture
def bare_root_logger(monkeypatch):
    """Root logger with no handlers, restored after the test."""
    root = logging.getLogger()
    monkeypatch.setattr(root, "handlers", [])
    level = root.level
    yield root
    for handler in root.handlers:
        handler.close()
    root.setLevel(level)


class TestLogFiles:
    def test_log_file_name(self, data_dir):
        path = get_log_file_path(datetime(2026, 3, 1), data_dir=data_dir)
        assert path.name == f"{LOG_PREFIX}2026-03-01.log"
        assert path.parent == get_logs_dir(data_dir)

    def test_load_recent_logs(self, data_dir):
        today = get_log_file_path(data_dir=data_dir)
        yesterday = get_log_file_path(datetime.now() - timedelta(days=1), data_dir=data_dir)
        yesterday.write_text("y1\ny2\n")
        today.write_text("t1\nt2\nt3\n")

        assert load_recent_logs(2, data_dir=data_dir) == ["t2", "t3"]
        assert load_recent_logs(4, data_dir=data_dir) == ["y2", "t1", "t2", "t3"]
        assert load_recent_logs(0, data_dir=data_dir) == []

    def test_cleanup_old_logs(self, data_dir):
        old = get_log_file_path(datetime.now() - timedelta(days=30), data_dir=data_dir)
        recent = get_log_file_path(data_dir=data_dir)
        unrelated = get_logs_dir(data_dir) / f"{LOG_PREFIX}notes.log"
        for path in (old, recent, unrelated):
            path.write_text("line\n")

        assert cleanup_old_logs(7, data_dir=data_dir) == 1
        assert not old.exists()
        assert recent.exists()
        assert unrelated.exists()


class TestConfigureLogging:
    def test_console_only(self, bare_root_logger, data_dir):
        configure_logging("debug", retention_days=0, data_dir=data_dir)
        assert bare_root_logger.level == logging.DEBUG
        assert len(bare_root_logger.handlers) == 1
        assert not get_log_file_path(data_dir=data_dir).exists()

    def test_file_output(self, bare_root_logger, data_dir):
        configure_logging(logging.INFO, retention_days=7, data_dir=data_dir)
        assert len(bare_root_logger.handlers) == 2

        logging.getLogger("ledgerlock.test").info("hello file")
        for handler in bare_root_logger.handlers:
            handler.flush()
        assert any("hello file" in line for line in load_recent_logs(10, data_dir=data_dir))

    def test_already_configured(self, bare_root_logger, data_dir):
        configure_logging(logging.INFO, data_dir=data_dir)
        configure_logging(logging.DEBUG, data_dir=data_dir)
        assert len(bare_root_logger.handlers) == 1
        assert bare_root_logger.level == logging.INFO


class TestDailyFileHandler:
    def _record(self, message: str, created: datetime) -> logging.LogRecord:
        record = logging.LogRecord("ledgerlock.test", logging.INFO, __file__, 1, message, None, None)
        record.created = created.timestamp()
        return record

    def test_switches_file_at_midnight(self, data_dir):
        today = datetime.now()
        tomorrow = today + timedelta(days=1)
        handler = DailyFileHandler(data_dir=data_dir)
        try:
            handler.handle(self._record("before midnight", today))
            handler.handle(self._record("after midnight", tomorrow))
        finally:
            handler.close()

        today_text = get_log_file_path(today, data_dir=data_dir).read_text()
        tomorrow_text = get_log_file_path(tomorrow, data_dir=data_dir).read_text()
        assert "before midnight" in today_text
        assert "after midnight" not in today_text
        assert "after midnight" in tomorrow_text

    def test_switch_applies_retention(self, data_dir):
        old = get_log_file_path(datetime.now() - timedelta(days=30), data_dir=data_dir)
        old.write_text("line\n")
        handler = DailyFileHandler(data_dir=data_dir, retention_days=7)
        try:
            handler.handle(self._record("next day", datetime.now() + timedelta(days=1)))
        finally:
            handler.close()
        assert not old.exists()
