"""Run orchestrator: one full refresh pass plus a bounded retry loop.

:class:`RunOrchestrator` owns the only two pieces of shared mutable state in
the core: the *running* flag and the *last outcome* slot.  Both are written
exclusively here and read by the scheduler and the status reporter.

Run lifecycle
-------------
1. **Guard** — a run arriving while another is in progress is dropped
   (logged, never queued, never raised).
2. **Initial pass** — :meth:`BaseScrapeService.run_full_scrape` produces a
   :class:`~pricepulse.core.models.RunSummary`.
3. **Retry loop** — attempts ``2..max_attempts``.  Before each attempt the
   loop waits ``delay_minutes`` through
   :meth:`CancellationController.wait`; a cancelled wait ends the loop
   immediately without retrying.  Each retry narrows the failure sets.
4. **Outcome** — a :class:`~pricepulse.core.models.RunOutcome` is stored
   as :attr:`RunOrchestrator.last_result`.

Any exception raised by the scrape service aborts the run and is recorded
as an errored outcome.  This is a background process with no caller to
receive the error, so nothing propagates except task cancellation.

Typical usage::

    orchestrator = RunOrchestrator(service, RetryConfig(), cancellation)
    outcome = await orchestrator.execute_run(StartedBy.MANUAL)
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime
from uuid import uuid4

from pricepulse.core.logging_config import RUN_ID_CTX
from pricepulse.core.models import (
    DelayProfile,
    RetryConfig,
    RetryResult,
    RetryState,
    RunOutcome,
    RunSummary,
    StartedBy,
)
from pricepulse.orchestrator.cancellation import CancellationController, WaitOutcome
from pricepulse.orchestrator.pacing import resolve_profile
from pricepulse.scraping.base import BaseScrapeService

__all__ = ["RunOrchestrator"]

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RunOrchestrator:
    """Executes refresh runs one at a time.

    Args:
        service: Scrape service performing the actual fetches.
        retry_config: Delay between attempts and total attempt bound.
        cancellation: Shared controller; the scheduler cancels it on stop.
        delay_profile: Pacing profile forwarded to the scrape service.
            Defaults to the ``interactive`` profile.
        clock: Callable returning the current UTC datetime; override in
            tests.
    """

    def __init__(
        self,
        service: BaseScrapeService,
        retry_config: RetryConfig,
        cancellation: CancellationController | None = None,
        delay_profile: DelayProfile | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._service = service
        self._retry_config = retry_config
        self._cancellation = cancellation or CancellationController()
        self._delay_profile = delay_profile or resolve_profile()
        self._clock = clock or _utcnow
        self._running = False
        self._last_result: RunOutcome | None = None

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def last_result(self) -> RunOutcome | None:
        return self._last_result

    @property
    def cancellation(self) -> CancellationController:
        return self._cancellation

    @property
    def retry_config(self) -> RetryConfig:
        return self._retry_config

    # ------------------------------------------------------------------
    # Public entry-point
    # ------------------------------------------------------------------

    async def execute_run(self, started_by: StartedBy) -> RunOutcome | None:
        """Execute one refresh run unless another is already in progress.

        Args:
            started_by: Manual or scheduled trigger.

        Returns:
            The stored :class:`RunOutcome`, or ``None`` when the call was
            dropped because a run was already in progress.
        """
        if not self._claim(started_by):
            return None
        try:
            return await self._execute(started_by)
        finally:
            self._running = False

    def start_run(
        self,
        started_by: StartedBy,
        *,
        name: str | None = None,
    ) -> asyncio.Task[RunOutcome] | None:
        """Claim the run slot now and execute the run in its own task.

        The running flag is set and the cancellation flag cleared before the
        task is created, so a ``cancel_all()`` issued before the task first
        runs still interrupts its retry loop.

        Returns:
            The run task, or ``None`` when a run was already in progress.
        """
        if not self._claim(started_by):
            return None
        task = asyncio.create_task(self._execute(started_by), name=name)
        task.add_done_callback(self._release)
        return task

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _claim(self, started_by: StartedBy) -> bool:
        if self._running:
            logger.info(
                "Refresh run already in progress — dropping %s trigger.",
                started_by.label,
            )
            return False
        self._running = True
        self._cancellation.reset()
        return True

    def _release(self, _task: asyncio.Task[RunOutcome]) -> None:
        self._running = False

    async def _execute(self, started_by: StartedBy) -> RunOutcome:
        token = RUN_ID_CTX.set(uuid4().hex[:8])
        t0 = time.monotonic()
        try:
            try:
                outcome = await self._run(started_by)
            except Exception as exc:
                logger.error(
                    "Refresh run failed after %.1f s: %s",
                    time.monotonic() - t0,
                    exc,
                    exc_info=True,
                )
                outcome = RunOutcome(
                    completed_at=self._clock(),
                    started_by=started_by,
                    error=str(exc) or type(exc).__name__,
                )
            self._last_result = outcome
            return outcome
        finally:
            RUN_ID_CTX.reset(token)

    async def _run(self, started_by: StartedBy) -> RunOutcome:
        profile = self._delay_profile
        max_attempts = self._retry_config.max_attempts
        delay_minutes = self._retry_config.delay_minutes
        t0 = time.monotonic()

        logger.info(
            "Starting refresh run — started_by=%s profile=%s max_attempts=%d.",
            started_by.label,
            profile.name,
            max_attempts,
        )

        raw_summary = await self._service.run_full_scrape(
            started_by=started_by,
            delay_profile=profile,
        )
        summary = RunSummary.model_validate(raw_summary)

        logger.info(
            "Initial pass complete — prices: %d/%d, benchmarks: %d/%d, currency: %s.",
            summary.price_success_count,
            summary.price_total,
            summary.benchmark_success_count,
            summary.benchmark_total,
            "OK" if summary.currency_success else "FAILED",
        )

        state = RetryState.from_summary(summary)

        while (
            state.attempt <= max_attempts
            and not self._cancellation.cancelled
            and state.has_failures
        ):
            logger.info(
                "Retry attempt %d/%d — %d item(s) to retry in %g minute(s).",
                state.attempt,
                max_attempts,
                state.remaining,
                delay_minutes,
            )

            waited = await self._cancellation.wait(delay_minutes * 60)
            if waited is WaitOutcome.CANCELLED:
                logger.info("Retry attempt %d interrupted by shutdown.", state.attempt)
                break

            raw_result = await self._service.retry_failed_items(
                state.snapshot(),
                attempt_number=state.attempt,
                started_by=started_by,
                delay_profile=profile,
            )
            state.apply(RetryResult.model_validate(raw_result))

            logger.info(
                "After retry %d: %d item(s) still failing.",
                state.attempt,
                state.remaining,
            )
            state.attempt += 1

        total_retries = max(state.attempt - 2, 0)
        cancelled = self._cancellation.cancelled

        outcome = RunOutcome(
            completed_at=self._clock(),
            started_by=started_by,
            initial_summary=summary,
            final_failed_price_ids=sorted(state.price_ids),
            final_failed_benchmark_ids=sorted(state.benchmark_ids),
            final_currency_success=not state.retry_currency,
            total_retry_attempts=total_retries,
            cancelled=cancelled,
        )

        duration = time.monotonic() - t0
        if outcome.succeeded:
            logger.info(
                "Refresh run complete in %.1f s — all items successful (%d retry attempt(s)).",
                duration,
                total_retries,
            )
        else:
            logger.warning(
                "Refresh run %s in %.1f s — %d item(s) still failing after %d retry attempt(s).",
                "cancelled" if cancelled else "complete",
                duration,
                state.remaining,
                total_retries,
            )
        return outcome
