"""Component wiring and the two runtime modes.

:func:`build_app` assembles the core from loaded settings.  Exactly one
instance of each component exists per process; they reference each other
explicitly instead of through module-level singletons:

1. :class:`~pricepulse.orchestrator.cancellation.CancellationController`
   shared by the orchestrator and the scheduler.
2. :class:`~pricepulse.orchestrator.runner.RunOrchestrator` with the
   resolved delay profile (``SCRAPE_DELAY_PROFILE`` override).
3. :class:`~pricepulse.storage.history.SqliteRunHistory` on the configured
   database path.
4. :class:`~pricepulse.orchestrator.scheduler.Scheduler`.
5. :class:`~pricepulse.orchestrator.status.StatusReporter`.

Runtime modes
-------------
* :func:`run_once` — one manual run, then exit.
* :func:`run_continuous` — initialise the scheduler and wait for ``SIGTERM``
  or Ctrl+C, then stop it and let the current run wind down.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from dataclasses import dataclass

from pricepulse.core.models import RunOutcome, StartedBy
from pricepulse.core.settings import Settings
from pricepulse.orchestrator.cancellation import CancellationController
from pricepulse.orchestrator.pacing import resolve_profile
from pricepulse.orchestrator.runner import RunOrchestrator
from pricepulse.orchestrator.scheduler import Scheduler
from pricepulse.orchestrator.status import StatusReporter
from pricepulse.scraping.base import BaseScrapeService, load_scrape_service
from pricepulse.storage.history import SqliteRunHistory

__all__ = ["App", "build_app", "run_continuous", "run_once"]

logger = logging.getLogger(__name__)


@dataclass
class App:
    """The wired component graph for one process."""

    settings: Settings
    service: BaseScrapeService
    cancellation: CancellationController
    orchestrator: RunOrchestrator
    scheduler: Scheduler
    status: StatusReporter


def build_app(settings: Settings, service: BaseScrapeService | None = None) -> App:
    """Assemble every component from *settings*.

    Args:
        settings: Loaded application settings.
        service: Scrape service to use.  When ``None`` it is loaded from
            ``settings.scrape_service``.

    Raises:
        ConfigError: If the scrape service cannot be loaded.
    """
    if service is None:
        service = load_scrape_service(settings.scrape_service, settings)

    schedule = settings.to_schedule_config()
    cancellation = CancellationController()
    orchestrator = RunOrchestrator(
        service,
        settings.to_retry_config(),
        cancellation,
        resolve_profile(override=settings.scrape_delay_profile),
    )
    scheduler = Scheduler(
        schedule,
        orchestrator,
        SqliteRunHistory(settings.database_path_resolved),
        cancellation=cancellation,
    )
    status = StatusReporter(schedule, orchestrator)
    return App(
        settings=settings,
        service=service,
        cancellation=cancellation,
        orchestrator=orchestrator,
        scheduler=scheduler,
        status=status,
    )


async def run_once(
    settings: Settings | None = None,
    service: BaseScrapeService | None = None,
) -> RunOutcome | None:
    """Execute a single manual refresh run and return its outcome."""
    if settings is None:
        settings = Settings()

    app = build_app(settings, service)
    async with app.service:
        return await app.orchestrator.execute_run(StartedBy.MANUAL)


async def run_continuous(
    settings: Settings | None = None,
    service: BaseScrapeService | None = None,
    *,
    stop_event: asyncio.Event | None = None,
) -> App:
    """Run the scheduler until ``SIGTERM``, Ctrl+C or *stop_event* is set.

    Args:
        settings: Application settings.  Loaded from environment if ``None``.
        service: Scrape service override (tests).
        stop_event: Optional event that requests shutdown when set.

    Returns:
        The wired :class:`App`, after shutdown completed.

    Raises:
        ConfigError: If the cron expression or scrape service is invalid.
    """
    if settings is None:
        settings = Settings()

    app = build_app(settings, service)
    stop_event = stop_event or asyncio.Event()
    loop = asyncio.get_running_loop()
    _shutdown_signal: list[str] = []

    def _request_graceful_shutdown(signame: str) -> None:
        if not _shutdown_signal:
            _shutdown_signal.append(signame)
            logger.info("Received %s — graceful shutdown requested.", signame)
        stop_event.set()

    with contextlib.suppress(NotImplementedError, RuntimeError):
        loop.add_signal_handler(signal.SIGTERM, lambda: _request_graceful_shutdown("SIGTERM"))

    async with app.service:
        controller = await app.scheduler.initialize()
        app.status.attach(controller)
        try:
            await stop_event.wait()
        finally:
            app.scheduler.stop()
            await app.scheduler.wait_idle()
            with contextlib.suppress(Exception):
                loop.remove_signal_handler(signal.SIGTERM)
            logger.info("Scheduler shut down.")

    return app
