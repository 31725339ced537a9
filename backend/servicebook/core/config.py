# backend/servicebook/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import BRAND_NAME

logger = logging.getLogger(__name__)


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug("[CONFIG] Looking for .env at: %s", env_path)
    load_dotenv(env_path)


class Settings(BaseSettings):
    app_name: str = BRAND_NAME
    environment: str = Field(
        default="development",
        description="Deployment environment (development|staging|production)",
    )
    is_testing: bool = False  # Set to True when running tests
    log_level: str = "INFO"

    # Persistence
    database_url: str = Field(
        default="sqlite:///./servicebook.db",
        description="SQLAlchemy URL for the template store and appointment ledger",
    )
    database_echo: bool = False

    # Redis backs the per-occurrence booking lock and the Celery broker.
    # When unset the booking lock falls back to an in-process lock.
    redis_url: Optional[str] = None
    lock_namespace: str = "servicebook"

    # Booking conflict guard
    booking_commit_timeout_seconds: float = Field(
        default=5.0,
        description="Upper bound for acquiring the slot lock and committing a booking",
    )
    booking_lock_ttl_seconds: int = Field(
        default=30,
        description="Expiry of the Redis slot lock in case the holder dies",
    )
    initial_booking_status: Literal["pending", "accepted"] = "accepted"

    # Weekly reset / sync job
    stale_after_days: int = Field(
        default=7,
        description="Days after an occurrence before its flags and statuses are retired",
    )
    maintenance_cron_hour: int = 3
    maintenance_cron_minute: int = 15

    api_prefix: str = "/api/v1"

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("booking_commit_timeout_seconds")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("booking_commit_timeout_seconds must be > 0")
        return value

    @field_validator("booking_lock_ttl_seconds", "stale_after_days")
    @classmethod
    def _positive_int(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be >= 1")
        return value

    @field_validator("initial_booking_status", mode="before")
    @classmethod
    def _normalize_initial_status(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("redis_url", mode="before")
    @classmethod
    def _blank_redis_is_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


settings = Settings()
