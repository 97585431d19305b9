"""Scheduling, single-flight run execution, retries, pacing and cancellation.

Public API
----------
* :class:`~pricepulse.orchestrator.scheduler.Scheduler` — cron trigger and
  missed-run detection; :meth:`initialize` returns a controller with
  ``stop`` / ``get_next_run`` / ``is_running``.
* :class:`~pricepulse.orchestrator.runner.RunOrchestrator` — one full
  refresh pass followed by a bounded, cancellable retry loop.
* :class:`~pricepulse.orchestrator.cancellation.CancellationController` —
  cancellable waits and tracked one-shot timers.
* :func:`~pricepulse.orchestrator.pacing.compute_delay` /
  :func:`~pricepulse.orchestrator.pacing.resolve_profile` /
  :class:`~pricepulse.orchestrator.pacing.HostPacer` — politeness delays
  between outbound requests.
* :class:`~pricepulse.orchestrator.status.StatusReporter` — read-only
  status snapshot for administrative callers.
"""

from pricepulse.orchestrator.cancellation import CancellationController, WaitOutcome
from pricepulse.orchestrator.pacing import (
    DEFAULT_PROFILE_NAME,
    DELAY_PROFILES,
    HostPacer,
    compute_delay,
    extract_host,
    resolve_profile,
)
from pricepulse.orchestrator.runner import RunOrchestrator
from pricepulse.orchestrator.scheduler import (
    DisabledController,
    RunHistory,
    Scheduler,
    SchedulerController,
)
from pricepulse.orchestrator.status import SchedulerStatus, StatusReporter

__all__ = [
    # Cancellation
    "CancellationController",
    "WaitOutcome",
    # Pacing
    "DEFAULT_PROFILE_NAME",
    "DELAY_PROFILES",
    "HostPacer",
    "compute_delay",
    "extract_host",
    "resolve_profile",
    # Run execution
    "RunOrchestrator",
    # Scheduling
    "DisabledController",
    "RunHistory",
    "Scheduler",
    "SchedulerController",
    # Status
    "SchedulerStatus",
    "StatusReporter",
]
