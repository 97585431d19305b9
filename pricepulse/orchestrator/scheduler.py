"""Cron-driven scheduler with missed-run detection.

The scheduler decides *when* a bulk refresh runs; the
:class:`~pricepulse.orchestrator.runner.RunOrchestrator` decides *how*.

Architecture
~~~~~~~~~~~~
The cron trigger is a single ``asyncio`` task that sleeps until the next
firing time computed by :func:`~pricepulse.core.cron.next_fire_time` and
then starts a run in its **own** task, so a long run never delays the
trigger's cadence.  A tick that arrives while a run is still executing is
dropped, not queued.

Sleeps are chunked (at most :data:`_MAX_SLEEP_CHUNK_S` each) and the
remaining time is recomputed from the wall clock after every chunk.  A host
that was suspended for hours therefore fires as soon as it resumes instead
of oversleeping by the suspended duration.

Missed runs
~~~~~~~~~~~
At startup, if ``run_on_startup_if_missed`` is set and the datastore already
exists, the most recent firing time strictly before *now* is compared with
the last successful price scrape.  When no success was ever recorded, or the
last success is older than that firing time, exactly one catch-up run is
deferred by ``startup_delay_minutes`` through the shared
:class:`~pricepulse.orchestrator.cancellation.CancellationController`.

Shutdown
~~~~~~~~
:meth:`Scheduler.stop` cancels the trigger task, cancels a pending catch-up
timer and wakes any in-progress retry wait as cancelled.  It is idempotent.
Any trigger arriving after ``stop()`` is ignored.
Await :meth:`Scheduler.wait_idle` afterwards to let the current run finish
its bookkeeping.

Typical usage::

    scheduler = Scheduler(schedule, orchestrator, history)
    controller = await scheduler.initialize()
    ...
    controller.stop()
    await scheduler.wait_idle()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Final, Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pricepulse.core.cron import next_fire_time, previous_fire_time, validate_cron
from pricepulse.core.exceptions import ConfigError, OrchestratorError
from pricepulse.core.models import PRICE_CATEGORY, ScheduleConfig, StartedBy
from pricepulse.orchestrator.cancellation import CancellationController
from pricepulse.orchestrator.runner import RunOrchestrator

__all__ = [
    "DisabledController",
    "RunHistory",
    "Scheduler",
    "SchedulerController",
]

logger = logging.getLogger(__name__)

#: Longest single sleep of the trigger loop before re-reading the clock.
_MAX_SLEEP_CHUNK_S: Final[float] = 3600.0


# ---------------------------------------------------------------------------
# Collaborator and controller contracts
# ---------------------------------------------------------------------------


class RunHistory(Protocol):
    """Persistence queries needed for missed-run detection."""

    def exists(self) -> bool: ...

    async def last_successful_run(self, category: str) -> datetime | None: ...


class SchedulerController(Protocol):
    """Handle returned by :meth:`Scheduler.initialize`."""

    def stop(self) -> None: ...

    def get_next_run(self) -> datetime | None: ...

    def is_running(self) -> bool: ...


class DisabledController:
    """No-op controller returned when scheduling is disabled."""

    def stop(self) -> None:
        return None

    def get_next_run(self) -> datetime | None:
        return None

    def is_running(self) -> bool:
        return False


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------


class Scheduler:
    """Owns the cron trigger and the missed-run catch-up timer.

    Exactly one instance is constructed at process start and passed by
    reference to anything that needs status.

    Args:
        schedule: Scheduling configuration, read once here.
        orchestrator: Executes the runs.
        history: Persistence collaborator for missed-run detection.  When
            ``None`` detection is skipped as if the datastore did not exist.
        cancellation: Controller tracking deferred timers.  Defaults to the
            orchestrator's controller so :meth:`stop` also interrupts the
            retry loop.
        clock: Callable returning the current UTC datetime.
        sleep: Awaitable sleep used by the trigger loop.
    """

    def __init__(
        self,
        schedule: ScheduleConfig,
        orchestrator: RunOrchestrator,
        history: RunHistory | None = None,
        *,
        cancellation: CancellationController | None = None,
        clock: Callable[[], datetime] | None = None,
        sleep: Callable[[float], Awaitable[object]] | None = None,
    ) -> None:
        self._schedule = schedule
        self._orchestrator = orchestrator
        self._history = history
        self._cancellation = cancellation or orchestrator.cancellation
        self._clock = clock or _utcnow
        self._sleep = sleep or asyncio.sleep
        self._trigger_task: asyncio.Task[None] | None = None
        self._background: set[asyncio.Task[object]] = set()
        self._started = False
        self._stopped = False

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def schedule(self) -> ScheduleConfig:
        return self._schedule

    @property
    def orchestrator(self) -> RunOrchestrator:
        return self._orchestrator

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> SchedulerController:
        """Start the cron trigger and check for a missed run.

        Returns:
            ``self`` when scheduling is enabled, otherwise a
            :class:`DisabledController`.

        Raises:
            ConfigError: If the cron expression or time zone is invalid.
            OrchestratorError: If called twice on the same instance.
        """
        validate_cron(self._schedule.cron_expression)
        try:
            ZoneInfo(self._schedule.timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigError(f"Unknown time zone: {self._schedule.timezone!r}") from exc

        if not self._schedule.enabled:
            logger.info("Scheduled refresh is disabled.")
            return DisabledController()

        if self._started:
            raise OrchestratorError("Scheduler.initialize() called twice")
        self._started = True

        self._trigger_task = asyncio.create_task(
            self._trigger_loop(),
            name="pricepulse-cron-trigger",
        )

        next_run = self.get_next_run()
        logger.info(
            "Scheduled refresh enabled — cron: %s (%s).",
            self._schedule.cron_expression,
            self._schedule.timezone,
        )
        logger.info(
            "Next scheduled refresh: %s.",
            next_run.isoformat() if next_run else "unknown",
        )

        if self._schedule.run_on_startup_if_missed:
            await self.check_for_missed_run()

        return self

    def stop(self) -> None:
        """Stop the trigger, cancel pending timers and interrupt retry waits."""
        if self._trigger_task is not None:
            self._trigger_task.cancel()
            self._background.add(self._trigger_task)
            self._trigger_task = None
            logger.info("Cron trigger stopped.")
        self._stopped = True
        self._cancellation.cancel_all()

    async def wait_idle(self) -> None:
        """Wait for the cancelled trigger and every spawned run task to finish."""
        while self._background:
            pending = list(self._background)
            await asyncio.gather(*pending, return_exceptions=True)
            self._background.difference_update(pending)

    # ------------------------------------------------------------------
    # Controller interface
    # ------------------------------------------------------------------

    def get_next_run(self) -> datetime | None:
        """Next firing time, or ``None`` when disabled, not started or stopped."""
        if not self._schedule.enabled or not self._started or self._stopped:
            return None
        return next_fire_time(
            self._schedule.cron_expression,
            self._clock(),
            self._schedule.timezone,
        )

    def is_running(self) -> bool:
        return self._orchestrator.is_running

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def trigger_manual_run(self) -> bool:
        """Start a manual run in the background.

        Returns:
            ``True`` if a run was started, ``False`` if one was already in
            progress and the request was dropped.
        """
        return self._spawn_run(StartedBy.MANUAL, "manual")

    async def check_for_missed_run(self) -> bool:
        """Defer one catch-up run if the last scheduled firing was missed.

        Returns:
            ``True`` if a catch-up run was scheduled.
        """
        if self._history is None or not self._history.exists():
            logger.info("Datastore not yet created — skipping missed-run check.")
            return False

        now = self._clock()
        last_scheduled = previous_fire_time(
            self._schedule.cron_expression,
            now,
            self._schedule.timezone,
        )

        try:
            last_success = await self._history.last_successful_run(PRICE_CATEGORY)
        except Exception:
            logger.warning(
                "Could not read last successful refresh — skipping missed-run check.",
                exc_info=True,
            )
            return False

        if last_success is not None and last_success.tzinfo is None:
            last_success = last_success.replace(tzinfo=UTC)

        if last_success is None:
            logger.info("No successful refresh recorded — scheduling startup refresh.")
        elif last_success < last_scheduled:
            logger.info(
                "Missed refresh detected — last success: %s, last scheduled: %s.",
                last_success.isoformat(),
                last_scheduled.isoformat(),
            )
        else:
            logger.info(
                "No missed refresh — last success %s is up to date.",
                last_success.isoformat(),
            )
            return False

        delay_minutes = self._schedule.startup_delay_minutes
        logger.info("Startup refresh will run in %g minute(s).", delay_minutes)
        self._cancellation.defer(
            delay_minutes * 60,
            lambda: self._spawn_run(StartedBy.SCHEDULED, "missed-run"),
        )
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _spawn_run(self, started_by: StartedBy, reason: str) -> bool:
        if self._stopped:
            logger.info("%s trigger ignored — scheduler is stopped.", reason)
            return False

        task = self._orchestrator.start_run(started_by, name=f"pricepulse-run-{reason}")
        if task is None:
            logger.info("%s trigger dropped — a refresh run is already in progress.", reason)
            return False

        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return True

    async def _trigger_loop(self) -> None:
        expression = self._schedule.cron_expression
        timezone = self._schedule.timezone

        while True:
            fire_at = next_fire_time(expression, self._clock(), timezone)
            logger.debug("Cron trigger sleeping until %s.", fire_at.isoformat())

            while (remaining := (fire_at - self._clock()).total_seconds()) > 0:
                await self._sleep(min(remaining, _MAX_SLEEP_CHUNK_S))

            try:
                logger.info("Cron tick at %s.", fire_at.isoformat())
                self._spawn_run(StartedBy.SCHEDULED, "scheduled")
            except Exception:
                logger.exception("Unhandled exception on cron tick — trigger keeps running.")
