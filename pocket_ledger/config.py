"""
Application configuration.

All configuration is loaded from environment variables.
Never hardcode secrets or connection strings in code.
"""

import os
from functools import lru_cache

from dotenv import load_dotenv

# Load .env file into environment variables
load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Pocket Ledger"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))

    # Database
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "sqlite:///./pocket_ledger.db"
    )
    # Create tables on startup instead of running migrations first.
    AUTO_CREATE_TABLES: bool = (
        os.getenv("AUTO_CREATE_TABLES", "true").lower() == "true"
    )

    # Ledger
    NOTE_MAX_LENGTH: int = int(os.getenv("NOTE_MAX_LENGTH", "250"))

    # Verification codes
    OTP_TTL_SECONDS: int = int(os.getenv("OTP_TTL_SECONDS", "600"))
    OTP_RESEND_COOLDOWN_SECONDS: int = int(
        os.getenv("OTP_RESEND_COOLDOWN_SECONDS", "60")
    )

    # Savings goals
    GOAL_URGENT_DAYS: int = int(os.getenv("GOAL_URGENT_DAYS", "7"))

    # Recurring expenses
    REMINDER_HORIZON_DAYS: int = int(os.getenv("REMINDER_HORIZON_DAYS", "7"))
    REMINDER_CHECK_INTERVAL_SECONDS: int = int(
        os.getenv("REMINDER_CHECK_INTERVAL_SECONDS", "300")
    )
    SCHEDULER_ENABLED: bool = (
        os.getenv("SCHEDULER_ENABLED", "true").lower() == "true"
    )

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")


@lru_cache()
def get_settings() -> Settings:
    """
    Return cached settings instance.

    The Settings object is created once and reused for
    all subsequent calls.
    """
    return Settings()
