"""
Unit tests for logging and tracing setup.

Covers the shared discovery logger, the rotating log file location, and
LangSmith staying off unless both the flag and the key are configured.
"""

import logging
import os
from unittest.mock import patch

import pytest

from src.utils import logging_config
from src.utils.logging_config import (
    LOG_FILE_NAME,
    SERVICE_LOGGER_NAME,
    setup_langsmith,
    setup_logging,
)


@pytest.fixture
def restore_root_handlers():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_modules_share_discovery_logger():
    assert logging_config.logger.name == SERVICE_LOGGER_NAME == "discovery"


def test_setup_logging_writes_discovery_log(tmp_path, monkeypatch, restore_root_handlers):
    monkeypatch.setattr(logging_config.config, "LOG_DIR", str(tmp_path / "logs"))

    setup_logging(debug=False)
    logging_config.logger.info("ranked 3 candidates")
    for handler in logging.getLogger().handlers:
        handler.flush()

    log_file = tmp_path / "logs" / LOG_FILE_NAME
    assert log_file.exists()
    line = log_file.read_text().strip().splitlines()[-1]
    assert "| discovery | INFO | discovery | ranked 3 candidates" in line
    assert logging.getLogger("google").level == logging.WARNING


def test_console_level_follows_debug(tmp_path, monkeypatch, restore_root_handlers):
    monkeypatch.setattr(logging_config.config, "LOG_DIR", str(tmp_path))

    setup_logging(debug=True)
    console = [
        h for h in logging.getLogger().handlers if not isinstance(h, logging.FileHandler)
    ]
    assert [h.level for h in console] == [logging.DEBUG]


class TestLangSmith:
    def test_disabled_by_default(self, monkeypatch):
        monkeypatch.setattr(logging_config.config, "LANGSMITH_ENABLED", False)
        assert setup_langsmith() is False

    def test_enabled_without_key_stays_off(self, monkeypatch):
        monkeypatch.setattr(logging_config.config, "LANGSMITH_ENABLED", True)
        monkeypatch.setattr(logging_config.config, "LANGSMITH_API_KEY", None)
        assert setup_langsmith() is False

    @patch.dict(os.environ, {}, clear=False)
    def test_enabled_sets_tracing_project(self, monkeypatch):
        monkeypatch.setattr(logging_config.config, "LANGSMITH_ENABLED", True)
        monkeypatch.setattr(logging_config.config, "LANGSMITH_API_KEY", "ls-key")
        monkeypatch.delenv("LANGCHAIN_PROJECT", raising=False)

        with patch("langsmith.Client") as client:
            assert setup_langsmith() is True

        client.assert_called_once()
        assert os.environ["LANGCHAIN_TRACING_V2"] == "true"
        assert os.environ["LANGCHAIN_PROJECT"] == "discovery-ranking"
