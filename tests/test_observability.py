"""
Tests for observability — logging setup and check results.

The root logger is restored after every test by the autouse
``restore_root_logger`` fixture in conftest.
"""

import logging
from pathlib import Path

import pytest

from vpsforge.core.observability.health import CheckResult
from vpsforge.core.observability.logging_config import (
    ENV_FILE,
    ENV_FILE_LEVEL,
    ENV_LEVEL,
    configure_cli_logging,
    level_from_flags,
    parse_level,
    setup_logging,
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in (ENV_LEVEL, ENV_FILE, ENV_FILE_LEVEL):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


# ── Levels ──────────────────────────────────────────────────────────


class TestParseLevel:
    def test_names(self):
        assert parse_level("debug") == logging.DEBUG
        assert parse_level(" ERROR ") == logging.ERROR

    def test_fallback(self):
        assert parse_level(None) == logging.WARNING
        assert parse_level("chatty") == logging.WARNING
        assert parse_level("chatty", default=logging.INFO) == logging.INFO


class TestLevelFromFlags:
    def test_flag_precedence(self, clean_env):
        assert level_from_flags(debug=True, verbose=True, quiet=True) == logging.DEBUG
        assert level_from_flags(verbose=True, quiet=True) == logging.INFO
        assert level_from_flags(quiet=True) == logging.ERROR

    def test_env_then_default(self, clean_env):
        assert level_from_flags() == logging.WARNING
        clean_env.setenv(ENV_LEVEL, "info")
        assert level_from_flags() == logging.INFO
        assert level_from_flags(quiet=True) == logging.ERROR


# ── Handlers ────────────────────────────────────────────────────────


class TestSetupLogging:
    def test_console_level(self):
        setup_logging("INFO")
        root = logging.getLogger()
        assert root.level == logging.INFO
        assert len(root.handlers) == 1

    def test_repeated_setup_does_not_stack_handlers(self):
        setup_logging(logging.WARNING)
        setup_logging(logging.DEBUG)
        assert len(logging.getLogger().handlers) == 1

    def test_file_handler(self, tmp_path: Path):
        log_file = tmp_path / "vpsforge.log"
        setup_logging("WARNING", log_file=str(log_file), log_file_level="DEBUG")
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        logging.getLogger("vpsforge.test").debug("to the file only")
        for handler in root.handlers:
            handler.flush()
        assert "to the file only" in log_file.read_text()

    def test_configure_from_env(self, clean_env, tmp_path: Path):
        log_file = tmp_path / "cli.log"
        clean_env.setenv(ENV_FILE, str(log_file))
        level = configure_cli_logging(quiet=True)
        assert level == logging.ERROR
        logging.getLogger("vpsforge.test").error("boom")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "boom" in log_file.read_text()


class TestCheckResult:
    def test_minimal_dict(self):
        data = CheckResult("lang.bun", message="ok").to_dict()
        assert data["id"] == "lang.bun"
        assert data["status"] == "pass"
        assert "fix" not in data
