"""Cancellable waits and tracked one-shot timers.

The retry loop sleeps for minutes between attempts, and a missed-run
catch-up is deferred by ``startup_delay_minutes``.  Both must be abortable on
shutdown without leaving a timer behind or a waiter hanging forever.

Every wait owns an :class:`asyncio.Future` *and* a timer handle.  The timer
resolves the future with :attr:`WaitOutcome.COMPLETED`;
:meth:`CancellationController.cancel_all` cancels the timer **and** resolves
the future with :attr:`WaitOutcome.CANCELLED`, so the waiter always wakes up
and can tell the two apart.

Thread-safety
~~~~~~~~~~~~~
The controller is a plain in-process object with no locking.  It is safe
for single-threaded ``asyncio`` usage but is **not** thread-safe.

Typical usage::

    cancellation = CancellationController()

    outcome = await cancellation.wait(300)
    if outcome is WaitOutcome.CANCELLED:
        return  # shutting down
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

__all__ = ["WaitOutcome", "CancellationController"]

logger = logging.getLogger(__name__)


class WaitOutcome(StrEnum):
    """How a :meth:`CancellationController.wait` call ended."""

    COMPLETED = "completed"
    """The timer fired naturally."""

    CANCELLED = "cancelled"
    """:meth:`CancellationController.cancel_all` interrupted the wait."""


@dataclass(eq=False)
class _PendingTimer:
    """One outstanding timer; ``future`` is ``None`` for deferred callbacks."""

    timer: asyncio.TimerHandle | None = None
    future: asyncio.Future[WaitOutcome] | None = None


class CancellationController:
    """Tracks outstanding timers and cancels them all at once.

    Attributes:
        cancelled: ``True`` once :meth:`cancel_all` has been called and until
            :meth:`reset` clears it.
        pending: Number of timers that have neither fired nor been cancelled.
    """

    def __init__(self) -> None:
        self._pending: set[_PendingTimer] = set()
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def pending(self) -> int:
        return len(self._pending)

    def reset(self) -> None:
        """Clear a stale cancellation flag before a new run starts."""
        self._cancelled = False

    async def wait(self, seconds: float) -> WaitOutcome:
        """Sleep for *seconds* unless cancelled first.

        Returns immediately with :attr:`WaitOutcome.CANCELLED` when the
        controller is already cancelled.  If the awaiting task is itself
        cancelled the timer is released before :exc:`asyncio.CancelledError`
        propagates.

        Args:
            seconds: Delay in seconds; negative values are treated as zero.

        Returns:
            :attr:`WaitOutcome.COMPLETED` or :attr:`WaitOutcome.CANCELLED`.
        """
        if self._cancelled:
            return WaitOutcome.CANCELLED

        loop = asyncio.get_running_loop()
        entry = _PendingTimer(future=loop.create_future())

        def _fire() -> None:
            self._pending.discard(entry)
            if entry.future is not None and not entry.future.done():
                entry.future.set_result(WaitOutcome.COMPLETED)

        entry.timer = loop.call_later(max(seconds, 0.0), _fire)
        self._pending.add(entry)
        try:
            return await entry.future
        finally:
            entry.timer.cancel()
            self._pending.discard(entry)

    def defer(self, seconds: float, callback: Callable[[], object]) -> asyncio.TimerHandle:
        """Run *callback* once after *seconds*, tracked for :meth:`cancel_all`.

        Args:
            seconds: Delay in seconds; negative values are treated as zero.
            callback: Zero-argument callable invoked on the event loop.

        Returns:
            The underlying timer handle.
        """
        loop = asyncio.get_running_loop()
        entry = _PendingTimer()

        def _fire() -> None:
            self._pending.discard(entry)
            callback()

        entry.timer = loop.call_later(max(seconds, 0.0), _fire)
        self._pending.add(entry)
        return entry.timer

    def cancel_all(self) -> None:
        """Cancel every outstanding timer and wake every waiter as cancelled.

        Sets :attr:`cancelled` so that a retry loop checking the flag exits
        on its next iteration.  Calling it again with nothing pending only
        re-sets the flag.
        """
        self._cancelled = True
        if not self._pending:
            return

        pending = list(self._pending)
        self._pending.clear()
        for entry in pending:
            if entry.timer is not None:
                entry.timer.cancel()
            if entry.future is not None and not entry.future.done():
                entry.future.set_result(WaitOutcome.CANCELLED)

        logger.info("Cancelled %d pending timer(s).", len(pending))
