"""
Unit tests for configuration loading and validation.

These tests ensure:
  1. Config loads from environment variables correctly
  2. Type conversions work (e.g., strings to ints and bools)
  3. Inconsistent settings are rejected at startup
"""

import pytest
from pydantic import ValidationError
from unittest.mock import patch
from src.config import Config, validate_config


class TestConfigLoading:
    """Test configuration loading from environment."""

    @patch.dict("os.environ", {"FIREBASE_PROJECT_ID": "test-project"})
    def test_firebase_project_loads(self):
        config = Config(_env_file=None)
        assert config.FIREBASE_PROJECT_ID == "test-project"

    @patch.dict("os.environ", {"PERSIST_SWIPES": "true"})
    def test_boolean_config_conversion(self):
        config = Config(_env_file=None)
        assert config.PERSIST_SWIPES is True

    @patch.dict("os.environ", {"PORT": "9000", "MAX_CANDIDATES": "50"})
    def test_integer_config_conversion(self):
        """Integer environment variables should be converted to int."""
        config = Config(_env_file=None)
        assert config.PORT == 9000
        assert config.MAX_CANDIDATES == 50

    def test_discovery_defaults(self):
        config = Config(_env_file=None)
        assert config.DEFAULT_MATCH_LIMIT == 20
        assert config.SWIPE_HISTORY_LIMIT == 100
        assert config.BEHAVIOR_MIN_HISTORY == 10
        assert config.DEMO_SEED == 42

    @patch.dict("os.environ", {"SWIPE_HISTORY_LIMIT": "0"})
    def test_history_limit_must_be_positive(self):
        with pytest.raises(ValidationError):
            Config(_env_file=None)


class TestConfigValidation:
    """Test configuration validation function."""

    @patch("src.config.config")
    def test_persist_swipes_requires_firebase(self, mock_config):
        mock_config.FIREBASE_PROJECT_ID = None
        mock_config.PERSIST_SWIPES = True
        mock_config.LANGSMITH_ENABLED = False

        with pytest.raises(ValueError, match="PERSIST_SWIPES"):
            validate_config()

    @patch("src.config.config")
    def test_validate_langsmith_enabled_requires_key(self, mock_config):
        """LangSmith enabled requires API key."""
        mock_config.FIREBASE_PROJECT_ID = "test"
        mock_config.PERSIST_SWIPES = False
        mock_config.LANGSMITH_ENABLED = True
        mock_config.LANGSMITH_API_KEY = None

        with pytest.raises(ValueError, match="LANGSMITH_ENABLED"):
            validate_config()

    @patch("src.config.config")
    def test_demo_mode_is_valid(self, mock_config):
        mock_config.FIREBASE_PROJECT_ID = None
        mock_config.PERSIST_SWIPES = False
        mock_config.LANGSMITH_ENABLED = False

        result = validate_config()
        assert result["firebase"] == "✗ Demo store"
        assert result["swipe_persistence"] == "✗ Memory only"

    @patch("src.config.config")
    def test_validate_success_returns_status(self, mock_config):
        """Successful validation should return status dict."""
        mock_config.FIREBASE_PROJECT_ID = "test"
        mock_config.PERSIST_SWIPES = True
        mock_config.LANGSMITH_ENABLED = False
        mock_config.LANGSMITH_API_KEY = None

        result = validate_config()
        assert result["firebase"] == "✓ Configured"
        assert result["swipe_persistence"] == "✓ Enabled"
        assert result["langsmith"] == "✗ Disabled"
