"""Read-only scheduler status for administrative callers.

:class:`StatusReporter` recomputes a :class:`SchedulerStatus` snapshot on
every call from the static schedule, the scheduler controller and the
orchestrator.  Nothing is cached here except what the orchestrator already
keeps (the last run outcome).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pricepulse.core.models import RunOutcome, ScheduleConfig
from pricepulse.orchestrator.runner import RunOrchestrator
from pricepulse.orchestrator.scheduler import DisabledController, SchedulerController

__all__ = ["SchedulerStatus", "StatusReporter"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SchedulerStatus:
    """Point-in-time view of the scheduler.

    Attributes:
        enabled: Whether scheduled refreshes are configured.
        cron_expression: The configured cron expression.
        next_run: Next firing time, ``None`` when disabled or stopped.
        is_currently_running: Whether a run is executing right now.
        last_run_result: Outcome of the most recent completed run.
    """

    enabled: bool
    cron_expression: str
    next_run: datetime | None
    is_currently_running: bool
    last_run_result: RunOutcome | None

    def as_dict(self) -> dict[str, Any]:
        """Return a JSON-serialisable representation (ISO-8601 timestamps)."""
        return {
            "enabled": self.enabled,
            "cron_expression": self.cron_expression,
            "next_run": self.next_run.isoformat() if self.next_run else None,
            "is_currently_running": self.is_currently_running,
            "last_run_result": self.last_run_result.as_dict() if self.last_run_result else None,
        }


class StatusReporter:
    """Derives :class:`SchedulerStatus` from live component state.

    Args:
        schedule: Static scheduling configuration.
        orchestrator: Source of the running flag and last outcome.
        controller: Scheduler controller; may be attached after
            :meth:`~pricepulse.orchestrator.scheduler.Scheduler.initialize`.
    """

    def __init__(
        self,
        schedule: ScheduleConfig,
        orchestrator: RunOrchestrator,
        controller: SchedulerController | None = None,
    ) -> None:
        self._schedule = schedule
        self._orchestrator = orchestrator
        self._controller: SchedulerController = controller or DisabledController()

    def attach(self, controller: SchedulerController) -> None:
        self._controller = controller

    def status(self) -> SchedulerStatus:
        return SchedulerStatus(
            enabled=self._schedule.enabled,
            cron_expression=self._schedule.cron_expression,
            next_run=self._controller.get_next_run(),
            is_currently_running=self._orchestrator.is_running,
            last_run_result=self._orchestrator.last_result,
        )
