# studio_scheduler/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import pytz


_PROJECT_ROOT = Path(__file__).resolve().parents[2]

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    environment: Literal["development", "test", "staging", "production"] = Field(
        default="development",
        description="Deployment environment name",
    )
    is_testing: bool = Field(default=False, description="Set by the test suite")

    database_url: str = Field(
        default="sqlite:///./studio_scheduler.db",
        description="SQLAlchemy URL of the studio database",
    )
    database_echo: bool = Field(default=False, description="Echo SQL statements")
    sqlite_lock_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="How long a SQLite writer waits for the database write lock",
    )

    # Studio wall clock. Dates and HH:MM times supplied by the admin panel are local to it.
    studio_timezone: str = Field(
        default="Europe/Madrid",
        description="IANA timezone used to interpret local dates and times",
    )

    # Scheduling
    recurring_dates_max_scan_days: int = Field(
        default=2000,
        ge=1,
        description="Safety bound on days scanned when expanding recurring dates",
    )
    enforce_blackouts_on_schedule: bool = Field(
        default=True,
        description="Run the blackout resolver before committing planned sessions",
    )

    # Attendance tokens
    booking_token_horizon_hours: int = Field(
        default=6,
        ge=1,
        description="Booking QR tokens expire this many hours after session start",
    )
    checkin_token_ttl_seconds: int = Field(
        default=10,
        ge=1,
        description="Lifetime of instructor-generated check-in tokens",
    )
    checkin_token_prefix: str = Field(default="INST", description="Prefix for check-in tokens")
    public_base_url: str = Field(
        default="http://localhost:3000",
        description="Base URL embedded in QR payloads",
    )

    # Monitoring
    slow_operation_threshold_seconds: float = Field(
        default=1.0,
        description="Operations slower than this are logged as warnings",
    )

    model_config = SettingsConfigDict(
        env_file=str(_PROJECT_ROOT / ".env") if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("studio_timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        try:
            pytz.timezone(value)
        except pytz.UnknownTimeZoneError as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("public_base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


settings = Settings()
logger.info(
    "[CONFIG] environment=%s studio_timezone=%s",
    settings.environment,
    settings.studio_timezone,
)
