"""Unit tests for eventboard logging setup."""

from __future__ import annotations

import logging

import pytest

from eventboard.logging_config import NOISY_LOGGERS, configure_logging, get_logging_status

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def restore_levels(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("EVENTBOARD_DEBUG", raising=False)
    monkeypatch.delenv("EVENTBOARD_LOG_LEVEL", raising=False)
    names = ["", "eventboard", *NOISY_LOGGERS]
    saved = {name: logging.getLogger(name).level for name in names}
    yield
    for name, level in saved.items():
        logging.getLogger(name).setLevel(level)


class TestConfigureLogging:
    def test_configure_logging_when_default_then_info_and_quiet_http(self) -> None:
        """Test default logging is INFO with quiet HTTP loggers."""
        configure_logging()

        status = get_logging_status()
        assert status["eventboard"] == "INFO"
        assert status["httpx"] == "WARNING"
        assert status["httpcore"] == "WARNING"

    def test_configure_logging_when_env_debug_then_debug(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test EVENTBOARD_DEBUG enables debug logging."""
        monkeypatch.setenv("EVENTBOARD_DEBUG", "yes")

        configure_logging(debug_mode=False)

        assert logging.getLogger("eventboard").level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_configure_logging_when_force_debug_false_then_env_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test force_debug overrides the environment."""
        monkeypatch.setenv("EVENTBOARD_DEBUG", "1")

        configure_logging(force_debug=False)

        assert logging.getLogger("eventboard").level == logging.INFO

    def test_configure_logging_when_log_level_env_then_root_level(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test EVENTBOARD_LOG_LEVEL sets the root level."""
        monkeypatch.setenv("EVENTBOARD_LOG_LEVEL", "warning")

        configure_logging()

        assert logging.getLogger().level == logging.WARNING
