"""Core domain models, settings, logging configuration, and shared utilities."""

from pricepulse.core.cron import (
    is_valid_cron,
    next_fire_time,
    previous_fire_time,
    validate_cron,
)
from pricepulse.core.exceptions import (
    ConfigError,
    OrchestratorError,
    PricePulseError,
    ScrapeError,
    ScrapeServiceError,
    StorageError,
)
from pricepulse.core.logging_config import JsonFormatter, configure_logging
from pricepulse.core.models import (
    PRICE_CATEGORY,
    DelayProfile,
    DelayRange,
    RetryConfig,
    RetryResult,
    RetryState,
    RunOutcome,
    RunSummary,
    ScheduleConfig,
    StartedBy,
)
from pricepulse.core.settings import Settings

__all__ = [
    # Logging
    "configure_logging",
    "JsonFormatter",
    # Cron helpers
    "is_valid_cron",
    "validate_cron",
    "next_fire_time",
    "previous_fire_time",
    # Domain models
    "PRICE_CATEGORY",
    "StartedBy",
    "ScheduleConfig",
    "RetryConfig",
    "DelayRange",
    "DelayProfile",
    "RunSummary",
    "RetryResult",
    "RetryState",
    "RunOutcome",
    # Settings
    "Settings",
    # Exceptions
    "PricePulseError",
    "ConfigError",
    "StorageError",
    "ScrapeError",
    "ScrapeServiceError",
    "OrchestratorError",
]
