"""Unit tests for :class:`CancellationController`.

Tests cover:
- A wait completes naturally and leaves no pending timer.
- ``cancel_all`` wakes every waiter with CANCELLED and clears timers.
- A wait started after ``cancel_all`` returns immediately; ``reset`` clears it.
- ``defer`` runs the callback once; ``cancel_all`` prevents it.
- Cancelling the awaiting task releases the timer.
"""

from __future__ import annotations

import asyncio

import pytest

from pricepulse.orchestrator.cancellation import CancellationController, WaitOutcome


class TestWait:
    @pytest.mark.asyncio
    async def test_completes_naturally(self) -> None:
        ctl = CancellationController()
        outcome = await ctl.wait(0.01)
        assert outcome is WaitOutcome.COMPLETED
        assert ctl.pending == 0
        assert ctl.cancelled is False

    @pytest.mark.asyncio
    async def test_negative_delay_is_treated_as_zero(self) -> None:
        ctl = CancellationController()
        assert await ctl.wait(-5) is WaitOutcome.COMPLETED

    @pytest.mark.asyncio
    async def test_cancel_all_wakes_every_waiter(self) -> None:
        ctl = CancellationController()
        waiters = [asyncio.create_task(ctl.wait(3600)) for _ in range(3)]
        await asyncio.sleep(0)
        assert ctl.pending == 3

        ctl.cancel_all()
        outcomes = await asyncio.wait_for(asyncio.gather(*waiters), timeout=1)

        assert outcomes == [WaitOutcome.CANCELLED] * 3
        assert ctl.pending == 0
        assert ctl.cancelled is True

    @pytest.mark.asyncio
    async def test_wait_after_cancel_returns_immediately(self) -> None:
        ctl = CancellationController()
        ctl.cancel_all()
        outcome = await asyncio.wait_for(ctl.wait(3600), timeout=1)
        assert outcome is WaitOutcome.CANCELLED
        assert ctl.pending == 0

    @pytest.mark.asyncio
    async def test_reset_clears_cancelled_flag(self) -> None:
        ctl = CancellationController()
        ctl.cancel_all()
        ctl.reset()
        assert ctl.cancelled is False
        assert await ctl.wait(0) is WaitOutcome.COMPLETED

    @pytest.mark.asyncio
    async def test_task_cancellation_releases_timer(self) -> None:
        ctl = CancellationController()
        task = asyncio.create_task(ctl.wait(3600))
        await asyncio.sleep(0)
        assert ctl.pending == 1

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert ctl.pending == 0


class TestCancelAll:
    @pytest.mark.asyncio
    async def test_idempotent(self) -> None:
        ctl = CancellationController()
        waiter = asyncio.create_task(ctl.wait(3600))
        await asyncio.sleep(0)

        ctl.cancel_all()
        ctl.cancel_all()

        assert await waiter is WaitOutcome.CANCELLED
        assert ctl.pending == 0
        assert ctl.cancelled is True

    @pytest.mark.asyncio
    async def test_noop_with_nothing_pending(self) -> None:
        ctl = CancellationController()
        ctl.cancel_all()
        assert ctl.pending == 0
        assert ctl.cancelled is True


class TestDefer:
    @pytest.mark.asyncio
    async def test_callback_runs_once(self) -> None:
        ctl = CancellationController()
        calls: list[int] = []
        ctl.defer(0.01, lambda: calls.append(1))
        assert ctl.pending == 1

        await asyncio.sleep(0.05)

        assert calls == [1]
        assert ctl.pending == 0

    @pytest.mark.asyncio
    async def test_cancel_all_prevents_callback(self) -> None:
        ctl = CancellationController()
        calls: list[int] = []
        ctl.defer(0.01, lambda: calls.append(1))

        ctl.cancel_all()
        await asyncio.sleep(0.05)

        assert calls == []
        assert ctl.pending == 0

    @pytest.mark.asyncio
    async def test_returns_timer_handle(self) -> None:
        ctl = CancellationController()
        handle = ctl.defer(3600, lambda: None)
        assert isinstance(handle, asyncio.TimerHandle)
        ctl.cancel_all()
        assert handle.cancelled()
