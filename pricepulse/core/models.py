"""Pricepulse core domain models.

Two families of types live here:

* **Boundary models** (pydantic, frozen) — values that cross into the core
  from configuration or from the scrape service: :class:`ScheduleConfig`,
  :class:`RetryConfig`, :class:`DelayRange`, :class:`DelayProfile`,
  :class:`RunSummary` and :class:`RetryResult`.  Validation happens once, at
  construction, so the orchestrator can trust every field.

* **Run-scoped state** (dataclasses) — :class:`RetryState` is created fresh
  for each run and mutated by the retry loop; :class:`RunOutcome` is the
  single record the orchestrator keeps after a run ends.

Typical usage::

    from pricepulse.core.models import RunSummary, StartedBy

    summary = RunSummary(
        price_success_count=10,
        price_fail_count=2,
        failed_price_ids=[7, 9],
        currency_success=True,
    )
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

__all__ = [
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
]

logger = logging.getLogger(__name__)

#: Scrape-history category consulted by missed-run detection.
PRICE_CATEGORY: str = "price"


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class StartedBy(IntEnum):
    """Who initiated a refresh run.

    Stored as an integer in the scrape history (``0`` manual, ``1``
    scheduled) so rows written by older tooling remain comparable.
    """

    MANUAL = 0
    SCHEDULED = 1

    @property
    def label(self) -> str:
        return self.name.lower()


# ---------------------------------------------------------------------------
# Configuration values
# ---------------------------------------------------------------------------


class ScheduleConfig(BaseModel):
    """Parsed, validated scheduling configuration.

    Attributes:
        enabled: Master switch; when ``False`` the scheduler does nothing.
        cron_expression: Five-field cron expression for the bulk refresh.
        run_on_startup_if_missed: Run once shortly after startup when the
            most recent scheduled firing was missed.
        startup_delay_minutes: Delay before the catch-up run.
        timezone: IANA zone the cron expression is evaluated in.
    """

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    cron_expression: str = "0 8 * * 6"
    run_on_startup_if_missed: bool = True
    startup_delay_minutes: float = Field(default=10, ge=0)
    timezone: str = "UTC"


class RetryConfig(BaseModel):
    """Pacing and bound of the retry loop.

    ``max_attempts`` counts the initial pass, so ``max_attempts=3`` allows at
    most two retries.
    """

    model_config = ConfigDict(frozen=True)

    delay_minutes: float = Field(default=5, ge=0)
    max_attempts: int = Field(default=5, ge=1, le=10)


class DelayRange(BaseModel):
    """Inclusive ``[min, max]`` pause window in milliseconds."""

    model_config = ConfigDict(frozen=True)

    min: int = Field(ge=0)
    max: int = Field(ge=0)

    @model_validator(mode="after")
    def _validate_bounds(self) -> DelayRange:
        if self.min > self.max:
            raise ValueError(f"DelayRange min ({self.min}) > max ({self.max})")
        return self


class DelayProfile(BaseModel):
    """Named pair of pause windows for consecutive outbound requests."""

    model_config = ConfigDict(frozen=True)

    name: str
    same_host: DelayRange
    different_host: DelayRange


# ---------------------------------------------------------------------------
# Scrape service results
# ---------------------------------------------------------------------------


class RunSummary(BaseModel):
    """Outcome of one full scrape pass, as reported by the scrape service."""

    model_config = ConfigDict(frozen=True)

    price_success_count: int = Field(default=0, ge=0)
    price_fail_count: int = Field(default=0, ge=0)
    benchmark_success_count: int = Field(default=0, ge=0)
    benchmark_fail_count: int = Field(default=0, ge=0)
    currency_success: bool = False
    failed_price_ids: list[int] = Field(default_factory=list)
    failed_benchmark_ids: list[int] = Field(default_factory=list)

    @property
    def price_total(self) -> int:
        return self.price_success_count + self.price_fail_count

    @property
    def benchmark_total(self) -> int:
        return self.benchmark_success_count + self.benchmark_fail_count


class RetryResult(BaseModel):
    """Remaining failures after one retry attempt.

    ``currency_success`` defaults to ``True`` because a retry that was not
    asked to refresh currency rates has nothing to report as failed.
    """

    model_config = ConfigDict(frozen=True)

    failed_price_ids: list[int] = Field(default_factory=list)
    failed_benchmark_ids: list[int] = Field(default_factory=list)
    currency_success: bool = True


# ---------------------------------------------------------------------------
# Run-scoped state
# ---------------------------------------------------------------------------


@dataclass
class RetryState:
    """Mutable failure bookkeeping for a single run.

    Attributes:
        price_ids: Price item ids still failing.
        benchmark_ids: Benchmark item ids still failing.
        retry_currency: Whether the currency-rate refresh still needs a retry.
        attempt: Number of the next attempt.  Starts at 2 because attempt 1
            is the initial full pass.
    """

    price_ids: set[int] = field(default_factory=set)
    benchmark_ids: set[int] = field(default_factory=set)
    retry_currency: bool = False
    attempt: int = 2

    @classmethod
    def from_summary(cls, summary: RunSummary) -> RetryState:
        return cls(
            price_ids=set(summary.failed_price_ids),
            benchmark_ids=set(summary.failed_benchmark_ids),
            retry_currency=not summary.currency_success,
        )

    @property
    def remaining(self) -> int:
        """Number of outstanding items, counting the currency refresh as one."""
        return len(self.price_ids) + len(self.benchmark_ids) + (1 if self.retry_currency else 0)

    @property
    def has_failures(self) -> bool:
        return self.remaining > 0

    def snapshot(self) -> RetryState:
        """Return an independent copy safe to hand to a collaborator."""
        return RetryState(
            price_ids=set(self.price_ids),
            benchmark_ids=set(self.benchmark_ids),
            retry_currency=self.retry_currency,
            attempt=self.attempt,
        )

    def apply(self, result: RetryResult) -> None:
        """Narrow the state to the failures reported by *result*.

        Currency stays pending only if it was pending before *and* the
        retry failed it again.
        """
        self.price_ids = set(result.failed_price_ids)
        self.benchmark_ids = set(result.failed_benchmark_ids)
        self.retry_currency = self.retry_currency and not result.currency_success


@dataclass(frozen=True)
class RunOutcome:
    """Final record of one run, kept as the scheduler's ``last_run_result``.

    A run that hit an unrecoverable internal error carries only
    ``completed_at``, ``started_by`` and ``error``; all other fields keep
    their defaults.

    Attributes:
        completed_at: UTC timestamp of the end of the run.
        started_by: Manual or scheduled.
        initial_summary: Result of the first full pass.
        final_failed_price_ids: Price ids still failing at the end.
        final_failed_benchmark_ids: Benchmark ids still failing at the end.
        final_currency_success: Whether currency rates were refreshed.
        total_retry_attempts: Retries actually performed after attempt 1.
        cancelled: The retry loop was interrupted by :meth:`stop`.
        error: Message of the exception that aborted the run, if any.
    """

    completed_at: datetime
    started_by: StartedBy
    initial_summary: RunSummary | None = None
    final_failed_price_ids: list[int] = field(default_factory=list)
    final_failed_benchmark_ids: list[int] = field(default_factory=list)
    final_currency_success: bool = False
    total_retry_attempts: int = 0
    cancelled: bool = False
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        """``True`` when the run ended without error and nothing is failing."""
        return (
            self.error is None
            and not self.final_failed_price_ids
            and not self.final_failed_benchmark_ids
            and self.final_currency_success
        )

    def as_dict(self) -> dict[str, Any]:
        """Return a JSON-serialisable representation."""
        base: dict[str, Any] = {
            "completed_at": self.completed_at.isoformat(),
            "started_by": self.started_by.label,
        }
        if self.error is not None:
            base["error"] = self.error
            return base
        base.update(
            {
                "initial_summary": (
                    self.initial_summary.model_dump() if self.initial_summary else None
                ),
                "final_failed_price_ids": list(self.final_failed_price_ids),
                "final_failed_benchmark_ids": list(self.final_failed_benchmark_ids),
                "final_currency_success": self.final_currency_success,
                "total_retry_attempts": self.total_retry_attempts,
                "cancelled": self.cancelled,
            }
        )
        return base
