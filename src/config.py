"""
Configuration module for the Discovery Ranking Service.

Loads environment variables and provides configuration singletons.
Uses pydantic for validation.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
import os


class Config(BaseSettings):
    """
    Application configuration loaded from environment variables.

    All values come from .env file or system environment.
    Type hints provide validation (pydantic converts types automatically).
    """

    # ============================================================
    # FIREBASE CONFIGURATION (OPTIONAL - DEMO STORE WHEN UNSET)
    # ============================================================
    FIREBASE_PROJECT_ID: Optional[str] = None
    """Firebase project ID. When unset the service runs on seeded in-memory stores."""

    GOOGLE_APPLICATION_CREDENTIALS: str = "/config/serviceAccountKey.json"
    """Path to Firebase service account JSON file."""

    # ============================================================
    # LANGSMITH CONFIGURATION (OPTIONAL - FOR DEBUGGING)
    # ============================================================
    LANGSMITH_API_KEY: Optional[str] = None
    """LangSmith API key for tracing discovery graph runs. Leave empty if not using."""

    LANGSMITH_ENABLED: bool = False
    """Enable LangSmith tracing. Set to True only if LANGSMITH_API_KEY is set."""

    LANGSMITH_PROJECT: str = "discovery-ranking"
    """LangSmith project that discovery graph traces are grouped under."""

    # ============================================================
    # DISCOVERY CONFIGURATION
    # ============================================================
    MAX_CANDIDATES: int = Field(default=200, ge=1)
    """Maximum candidates to fetch from the user store per discovery request."""

    DEFAULT_MATCH_LIMIT: int = Field(default=20, ge=1)
    """Number of ranked matches returned when the caller does not pass a limit."""

    SWIPE_HISTORY_LIMIT: int = Field(default=100, ge=1)
    """Swipes remembered per user for behavioral ranking (oldest evicted first)."""

    BEHAVIOR_MIN_HISTORY: int = Field(default=10, ge=0)
    """Behavior boost only kicks in once history is longer than this."""

    PERSIST_SWIPES: bool = False
    """Also write swipes to Firestore for swiped-user exclusion and mutual matches."""

    DEMO_POOL_SIZE: int = Field(default=40, ge=0)
    """Synthetic profiles seeded into the in-memory store when Firebase is unset."""

    DEMO_SEED: int = 42
    """Seed for the synthetic demo pool."""

    # ============================================================
    # SECURITY CONFIGURATION
    # ============================================================
    AI_SERVICE_TOKEN: str = os.getenv("AI_SERVICE_TOKEN", "")
    """Shared secret for authenticating requests from the app backend."""

    # ============================================================
    # SERVER CONFIGURATION
    # ============================================================
    PORT: int = 8000
    """Port to run FastAPI server on. Default: 8000."""

    HOST: str = "0.0.0.0"
    """Host to bind to. 0.0.0.0 = accessible from network."""

    DEBUG: bool = False
    """Enable debug logging. Set True for development, False for production."""

    LOG_DIR: str = "logs"
    """Directory for the rotating discovery.log file."""

    model_config = SettingsConfigDict(
        env_file=".env",  # Read from .env file
        case_sensitive=True,  # Variable names are case-sensitive
        extra="ignore",  # Ignore extra env vars not defined above
    )


# ============================================================
# SINGLETON INSTANCE
# ============================================================
# Load config once at startup, reuse throughout app
config = Config()


# ============================================================
# VALIDATION AT STARTUP
# ============================================================
def validate_config() -> dict:
    """
    Validate that config values are consistent.

    Called at app startup to fail fast if config is incomplete.

    Returns:
        dict: Status of each configured integration

    Raises:
        ValueError: If config is inconsistent
    """
    errors = []

    # Swipe persistence writes to Firestore
    if config.PERSIST_SWIPES and not config.FIREBASE_PROJECT_ID:
        errors.append("PERSIST_SWIPES=True but FIREBASE_PROJECT_ID not set")

    # If LangSmith enabled, must have API key
    if config.LANGSMITH_ENABLED and not config.LANGSMITH_API_KEY:
        errors.append("LANGSMITH_ENABLED=True but LANGSMITH_API_KEY not set")

    if errors:
        raise ValueError(f"Configuration errors:\n" + "\n".join([f"  - {e}" for e in errors]))

    return {
        "firebase": "✓ Configured" if config.FIREBASE_PROJECT_ID else "✗ Demo store",
        "swipe_persistence": "✓ Enabled" if config.PERSIST_SWIPES else "✗ Memory only",
        "langsmith": "✓ Configured" if config.LANGSMITH_ENABLED else "✗ Disabled",
    }


if __name__ == "__main__":
    """Allow testing config by running: python -m src.config"""
    try:
        status = validate_config()
        print("✅ Configuration is valid!")
        print("\nConfiguration Status:")
        for key, value in status.items():
            print(f"  {key}: {value}")
    except ValueError as e:
        print(f"❌ Configuration error:\n{e}")
        exit(1)
