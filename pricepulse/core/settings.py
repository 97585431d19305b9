"""Pricepulse application settings loaded from environment and ``.env`` files.

Uses :mod:`pydantic_settings` to parse environment variables (and optionally
an ``.env`` file) into a validated settings object.  The field name is the
**lowercase** version of the env-var name (e.g. ``RETRY_MAX_ATTEMPTS`` →
``retry_max_attempts``).

The orchestration core never reads :class:`Settings` directly; it consumes
the frozen value objects built by :meth:`Settings.to_schedule_config` and
:meth:`Settings.to_retry_config`.

Typical usage::

    from pricepulse.core.settings import Settings

    settings = Settings()
    schedule = settings.to_schedule_config()
    retry = settings.to_retry_config()
"""

from __future__ import annotations

import logging
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pricepulse.core.cron import is_valid_cron
from pricepulse.core.models import RetryConfig, ScheduleConfig

__all__ = ["Settings"]

logger = logging.getLogger(__name__)

_VALID_PROFILES = {"interactive", "cron"}


class Settings(BaseSettings):
    """Central application configuration.

    Values are loaded in priority order:

    1. Actual environment variables (highest priority).
    2. ``.env`` file in the working directory.
    3. Field defaults (lowest priority).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------
    scheduling_enabled: bool = Field(
        default=False,
        description="Enable the cron-driven bulk refresh.",
    )
    scheduling_cron: str = Field(
        default="0 8 * * 6",
        description="Cron expression for scheduled refreshes (default: Saturday 08:00).",
    )
    scheduling_run_on_startup_if_missed: bool = Field(
        default=True,
        description="Run a catch-up refresh after startup if a scheduled run was missed.",
    )
    scheduling_startup_delay_minutes: float = Field(
        default=10,
        ge=0,
        description="Minutes to wait after startup before the catch-up refresh.",
    )
    scheduling_timezone: str = Field(
        default="UTC",
        description="IANA time zone the cron expression is evaluated in.",
    )

    # ------------------------------------------------------------------
    # Retry
    # ------------------------------------------------------------------
    retry_delay_minutes: float = Field(
        default=5,
        gt=0,
        description="Minutes to wait between retry attempts.",
    )
    retry_max_attempts: int = Field(
        default=5,
        ge=1,
        le=10,
        description="Total attempts per run, including the initial pass.",
    )

    # ------------------------------------------------------------------
    # Pacing
    # ------------------------------------------------------------------
    scrape_delay_profile: str = Field(
        default="cron",
        description="Delay profile for outbound requests: 'interactive' or 'cron'.",
    )

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------
    database_path: str = Field(
        default="data/pricepulse.db",
        description="Path to the SQLite database holding the scrape history.",
    )

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------
    scrape_service: str = Field(
        default="",
        description="Dotted 'module:factory' path of the scrape service implementation.",
    )

    # ------------------------------------------------------------------
    # Runtime flags
    # ------------------------------------------------------------------
    log_level: str = Field(default="INFO", description="Logging level.")
    log_format: str = Field(default="text", description="Log format: 'text' or 'json'.")

    # ------------------------------------------------------------------
    # Field validators
    # ------------------------------------------------------------------

    @field_validator("scheduling_cron")
    @classmethod
    def _validate_cron(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("scheduling_cron must not be empty")
        if not is_valid_cron(v):
            raise ValueError(f"scheduling_cron is not a valid cron expression: {v!r}")
        return v

    @field_validator("scheduling_timezone")
    @classmethod
    def _validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"scheduling_timezone is not a known time zone: {v!r}") from exc
        return v

    @field_validator("scrape_delay_profile")
    @classmethod
    def _validate_profile(cls, v: str) -> str:
        v_lower = v.lower()
        if v_lower not in _VALID_PROFILES:
            raise ValueError(f"scrape_delay_profile must be one of {_VALID_PROFILES}, got {v!r}")
        return v_lower

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of {allowed}, got {v!r}")
        return v_upper

    @field_validator("log_format")
    @classmethod
    def _validate_log_format(cls, v: str) -> str:
        allowed = {"text", "json"}
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"log_format must be one of {allowed}, got {v!r}")
        return v_lower

    # ------------------------------------------------------------------
    # Derived helpers
    # ------------------------------------------------------------------

    def to_schedule_config(self) -> ScheduleConfig:
        """Build the frozen :class:`ScheduleConfig` consumed by the scheduler."""
        return ScheduleConfig(
            enabled=self.scheduling_enabled,
            cron_expression=self.scheduling_cron,
            run_on_startup_if_missed=self.scheduling_run_on_startup_if_missed,
            startup_delay_minutes=self.scheduling_startup_delay_minutes,
            timezone=self.scheduling_timezone,
        )

    def to_retry_config(self) -> RetryConfig:
        """Build the frozen :class:`RetryConfig` consumed by the orchestrator."""
        return RetryConfig(
            delay_minutes=self.retry_delay_minutes,
            max_attempts=self.retry_max_attempts,
        )

    @property
    def database_path_resolved(self) -> Path:
        """Return the database path as a resolved :class:`~pathlib.Path`."""
        return Path(self.database_path).resolve()
