"""
Application configuration using Pydantic Settings.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


OVERSELL_POLICIES = ("allow", "warn", "reject")
MISSING_BALANCE_POLICIES = ("ignore", "warn", "raise")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./database/subscription-data.db"
    SQLITE_BUSY_TIMEOUT_SECONDS: float = 5.0
    AUTO_CREATE_DB_SCHEMA: bool = True

    # API
    API_HOST: str = "127.0.0.1"
    API_PORT: int = 3000

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Logging
    LOG_LEVEL: str = "INFO"

    # Ledger policies
    LOW_CREDIT_THRESHOLD: int = 10
    OVERSELL_POLICY: str = "allow"  # allow | warn | reject
    MISSING_BALANCE_POLICY: str = "warn"  # ignore | warn | raise

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)


settings = Settings()


def validate_ledger_settings() -> None:
    """Fail fast when a ledger policy is set to an unknown value."""
    oversell = (settings.OVERSELL_POLICY or "").strip().lower()
    if oversell not in OVERSELL_POLICIES:
        raise ValueError(
            f"OVERSELL_POLICY must be one of {', '.join(OVERSELL_POLICIES)} (got {settings.OVERSELL_POLICY!r})."
        )
    missing = (settings.MISSING_BALANCE_POLICY or "").strip().lower()
    if missing not in MISSING_BALANCE_POLICIES:
        raise ValueError(
            "MISSING_BALANCE_POLICY must be one of "
            f"{', '.join(MISSING_BALANCE_POLICIES)} (got {settings.MISSING_BALANCE_POLICY!r})."
        )
    if int(settings.LOW_CREDIT_THRESHOLD) < 0:
        raise ValueError("LOW_CREDIT_THRESHOLD cannot be negative.")
