"""Tests for logging setup and console filtering."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from loguru import logger

from xnbtedit.cli.logging_config import (
    INTERCEPTED_LOGGERS,
    InterceptHandler,
    _should_show_log,
    setup_logging,
)


def record(level: str, message: str, name: str = "") -> dict:
    class _Level:
        pass

    lvl = _Level()
    lvl.name = level
    return {"level": lvl, "message": message, "extra": {"name": name} if name else {}}


class TestShouldShowLog:
    def test_debug_never(self) -> None:
        assert not _should_show_log(record("DEBUG", "Converted x"), verbose=True)

    @pytest.mark.parametrize("level", ["WARNING", "ERROR", "CRITICAL"])
    def test_problems_always(self, level: str) -> None:
        assert _should_show_log(record(level, "anything"), verbose=False)

    @pytest.mark.parametrize(
        "message",
        ["Converted level.dat -> out.xml", "Saved edits to level.dat", "Watching /tmp/x"],
    )
    def test_milestones(self, message: str) -> None:
        assert _should_show_log(record("INFO", message), verbose=False)

    def test_other_info_needs_verbose(self) -> None:
        assert not _should_show_log(record("INFO", "Found 3 input file(s)"), verbose=False)
        assert _should_show_log(record("INFO", "Found 3 input file(s)"), verbose=True)

    def test_third_party_info_hidden(self) -> None:
        msg = record("INFO", "Converted?", name="watchdog.observers")
        assert not _should_show_log(msg, verbose=True)


class TestSetupLogging:
    def test_log_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("XNBTEDIT_LOG_DIR", raising=False)

        handler_id, log_file = setup_logging(verbose=False, log_dir=str(tmp_path / "logs"))
        logger.debug("debug detail")
        logger.complete()
        logger.remove()

        assert handler_id is not None
        assert log_file is not None
        assert log_file.parent == tmp_path / "logs"
        assert "debug detail" in log_file.read_text(encoding="utf-8")

    def test_env_var_overrides_dir(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("XNBTEDIT_LOG_DIR", str(tmp_path / "env-logs"))

        _, log_file = setup_logging(verbose=False, log_dir=str(tmp_path / "ignored"))
        logger.remove()

        assert log_file is not None
        assert log_file.parent == tmp_path / "env-logs"

    def test_quiet_has_no_console_handler(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("XNBTEDIT_LOG_DIR", raising=False)

        handler_id, log_file = setup_logging(verbose=False, quiet=True)

        assert handler_id is None
        assert log_file is None

    def test_stdlib_loggers_are_intercepted(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("XNBTEDIT_LOG_DIR", raising=False)
        setup_logging(verbose=False, quiet=True)

        for name in INTERCEPTED_LOGGERS:
            stdlib_logger = logging.getLogger(name)
            assert any(isinstance(h, InterceptHandler) for h in stdlib_logger.handlers)
            assert stdlib_logger.propagate is False

    def test_intercept_forwards_to_loguru(self) -> None:
        messages: list[str] = []
        logger.add(lambda m: messages.append(m.record["message"]), level="WARNING")

        handler = InterceptHandler()
        handler.emit(
            logging.LogRecord("watchdog", logging.WARNING, __file__, 1, "inotify limit", None, None)
        )

        assert messages == ["inotify limit"]
