"""
Pytest configuration and shared fixtures for all tests.

This file is automatically loaded by pytest and provides:
  - Test configuration (env vars set before src.config is imported)
  - Profile and criteria factories with a fixed reference time
  - A mock Firebase app for Firestore store tests
"""

import os
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

# src.config builds its singleton at import time, so the environment has to be
# in place before any test module imports from src.
os.environ.pop("FIREBASE_PROJECT_ID", None)
os.environ.update(
    {
        "GOOGLE_APPLICATION_CREDENTIALS": "/config/test-serviceAccountKey.json",
        "PERSIST_SWIPES": "False",
        "LANGSMITH_ENABLED": "False",
        "AI_SERVICE_TOKEN": "",
        "DEMO_POOL_SIZE": "12",
        "DEBUG": "True",
    }
)

from src.models import (  # noqa: E402
    Gender,
    Lifestyle,
    Location,
    PreferenceCriteria,
    Profile,
)

FIXED_NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
SF = Location(lat=37.7749, lng=-122.4194)


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def make_profile():
    """
    Factory for Profile objects near San Francisco.

    Example:
        def test_something(make_profile):
            alice = make_profile("alice", age=27, interests=["Hiking"])
    """

    def _make(user_id: str, **overrides) -> Profile:
        fields = {
            "id": user_id,
            "name": user_id.title(),
            "age": 28,
            "gender": Gender.FEMALE,
            "location": SF,
            "bio": "",
            "photos": ["/p/1.jpg", "/p/2.jpg"],
            "interests": ["Hiking", "Coffee"],
            "last_active": FIXED_NOW - timedelta(hours=1),
            "lifestyle": Lifestyle(),
        }
        fields.update(overrides)
        return Profile(**fields)

    return _make


@pytest.fixture
def open_criteria():
    """Criteria that admit any adult within 100 km."""

    return PreferenceCriteria(age_range=(18, 120), max_distance_km=100.0)


@pytest.fixture
def mock_firebase_app(monkeypatch):
    """
    Provide a mock Firebase app for testing.

    Use this fixture in tests that need to mock Firestore calls.
    """
    from src.tools import firestore_tools

    mock_app = MagicMock()
    mock_db = MagicMock()

    monkeypatch.setattr("firebase_admin._apps", {"[DEFAULT]": mock_app})
    monkeypatch.setattr("firebase_admin.initialize_app", MagicMock(return_value=mock_app))
    monkeypatch.setattr("firebase_admin.firestore.client", MagicMock(return_value=mock_db))
    monkeypatch.setattr(firestore_tools, "_db", None)

    return {"app": mock_app, "db": mock_db}
