"""Pricepulse exception taxonomy.

Every custom exception inherits from :class:`PricePulseError`.  Exceptions are
organised by architectural layer so callers can catch at the right granularity:

    Layer hierarchy
    ---------------
    PricePulseError
    ├── ConfigError
    ├── StorageError
    ├── ScrapeError
    │   └── ScrapeServiceError
    └── OrchestratorError

Only :class:`ConfigError` is ever raised across the scheduler's trigger
boundary (from :meth:`~pricepulse.orchestrator.scheduler.Scheduler.initialize`).
Everything raised by the scrape service during a run is absorbed and recorded
on the run outcome instead.

Usage:

    from pricepulse.core.exceptions import ConfigError

    raise ConfigError(f"Invalid cron expression: {expr!r}") from exc
"""

from __future__ import annotations

__all__ = [
    "PricePulseError",
    "ConfigError",
    "StorageError",
    "ScrapeError",
    "ScrapeServiceError",
    "OrchestratorError",
]


class PricePulseError(Exception):
    """Root exception for all Pricepulse errors."""


# ---------------------------------------------------------------------------
# Config layer
# ---------------------------------------------------------------------------


class ConfigError(PricePulseError):
    """Raised when the application configuration is invalid or incomplete.

    Examples:
        - The cron expression cannot be parsed.
        - ``SCRAPE_SERVICE`` does not point at an importable factory.
    """


# ---------------------------------------------------------------------------
# Storage layer
# ---------------------------------------------------------------------------


class StorageError(PricePulseError):
    """Raised when reading or writing the scrape history fails."""


# ---------------------------------------------------------------------------
# Scrape layer
# ---------------------------------------------------------------------------


class ScrapeError(PricePulseError):
    """Base class for errors raised by scrape service implementations."""


class ScrapeServiceError(ScrapeError):
    """Raised when a scrape service cannot complete a pass at all.

    This is a *systemic* failure (browser launch failure, total network
    outage), not a single item failing.  Individual item failures are
    reported through the failure id lists instead.

    Args:
        operation: Name of the failing operation (``"full"`` or ``"retry"``).
        message: Human-readable error description.
    """

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        super().__init__(f"[{operation}] {message}")


# ---------------------------------------------------------------------------
# Orchestrator layer
# ---------------------------------------------------------------------------


class OrchestratorError(PricePulseError):
    """Raised for misuse of the scheduling or orchestration layer.

    Examples:
        - Initialising a scheduler twice.
    """
