"""Tests for logging setup."""

from __future__ import annotations

import io
import logging
import time
from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from rich.console import Console
from rich.logging import RichHandler

from copilot_usage_export.log import (
    ROOT_LOGGER,
    SUCCESS,
    SafeFileHandler,
    configure_logging,
    log_file_path,
    log_success,
)


def _quiet_console() -> Console:
    return Console(file=io.StringIO())


def _record(msg: str = "hello") -> logging.LogRecord:
    return logging.makeLogRecord({"msg": msg, "levelno": logging.INFO, "levelname": "INFO"})


class TestLogFilePath:
    """log_file_path() names one file per day."""

    def test_daily_name(self, tmp_path: Path) -> None:
        path = log_file_path(tmp_path, datetime(2026, 10, 18, 23, 59))
        assert path == tmp_path / "copilot-usage-export_20261018.log"

    def test_default_date_is_utc(self, tmp_path: Path) -> None:
        stamp = datetime.now(UTC).strftime("%Y%m%d")
        assert log_file_path(tmp_path).name == f"copilot-usage-export_{stamp}.log"


class TestConfigureLogging:
    """configure_logging() attaches console and file handlers."""

    def test_writes_log_file(self, tmp_path: Path) -> None:
        logger = configure_logging(tmp_path, console=_quiet_console())
        logging.getLogger(f"{ROOT_LOGGER}.exporter").info("Fetching %s report", "UserDetail")
        for handler in logger.handlers:
            handler.flush()

        text = log_file_path(tmp_path).read_text(encoding="utf-8")
        assert "[INFO] copilot_usage_export.exporter: Fetching UserDetail report" in text

    def test_file_timestamps_utc(self, tmp_path: Path) -> None:
        logger = configure_logging(tmp_path, console=_quiet_console())
        file_handler = next(h for h in logger.handlers if isinstance(h, SafeFileHandler))
        assert file_handler.formatter is not None
        assert file_handler.formatter.converter is time.gmtime

    def test_handlers_replaced_on_repeat_call(self, tmp_path: Path) -> None:
        configure_logging(tmp_path, console=_quiet_console())
        logger = configure_logging(tmp_path, console=_quiet_console())
        assert len(logger.handlers) == 2
        assert sum(isinstance(h, RichHandler) for h in logger.handlers) == 1

    def test_no_log_dir_console_only(self) -> None:
        logger = configure_logging(None, console=_quiet_console())
        assert [type(h) for h in logger.handlers] == [RichHandler]

    def test_level_from_name(self) -> None:
        logger = configure_logging(None, level="warning", console=_quiet_console())
        assert logger.level == logging.WARNING

    def test_unknown_level_defaults_to_info(self) -> None:
        logger = configure_logging(None, level="LOUD", console=_quiet_console())
        assert logger.level == logging.INFO

    def test_verbose_forces_debug(self) -> None:
        logger = configure_logging(None, level="ERROR", verbose=True, console=_quiet_console())
        assert logger.level == logging.DEBUG

    def test_uncreatable_log_dir_does_not_raise(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        logger = configure_logging(blocker / "logs", console=_quiet_console())
        assert not any(isinstance(h, SafeFileHandler) for h in logger.handlers)


class TestSafeFileHandler:
    """SafeFileHandler never raises on file problems."""

    def test_unopenable_file_swallowed(self, tmp_path: Path) -> None:
        handler = SafeFileHandler(tmp_path / "missing-dir" / "x.log")
        handler.emit(_record())
        handler.close()
        assert not (tmp_path / "missing-dir").exists()

    def test_write_failure_swallowed(self, tmp_path: Path) -> None:
        handler = SafeFileHandler(tmp_path / "x.log")
        handler.stream = MagicMock()
        handler.stream.write.side_effect = OSError("disk full")
        handler.emit(_record())
        handler.close()


class TestLogSuccess:
    """log_success() emits at the custom SUCCESS level."""

    def test_level(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = logging.getLogger(f"{ROOT_LOGGER}.test_success")
        with caplog.at_level(SUCCESS, logger=ROOT_LOGGER):
            log_success(logger, "Wrote %d row(s)", 5)
        assert caplog.records[0].levelno == SUCCESS
        assert caplog.records[0].levelname == "SUCCESS"
        assert caplog.records[0].getMessage() == "Wrote 5 row(s)"
