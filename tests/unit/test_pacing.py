"""Unit tests for the pacing helpers.

Tests cover:
- ``resolve_profile`` — known names, unknown/missing names, override precedence.
- ``compute_delay`` — first request, same-host and different-host windows.
- ``extract_host`` — valid URLs, empty/None and unparsable input.
- ``HostPacer`` — remembers the previous host, sleeps through the
  cancellation controller and reports cancellation.
"""

from __future__ import annotations

import random
from unittest.mock import AsyncMock, patch

import pytest

from pricepulse.core.models import DelayProfile, DelayRange
from pricepulse.orchestrator.cancellation import CancellationController, WaitOutcome
from pricepulse.orchestrator.pacing import (
    DEFAULT_PROFILE_NAME,
    DELAY_PROFILES,
    HostPacer,
    compute_delay,
    extract_host,
    resolve_profile,
)

# ---------------------------------------------------------------------------
# resolve_profile
# ---------------------------------------------------------------------------


class TestResolveProfile:
    def test_known_names(self) -> None:
        assert resolve_profile("interactive").name == "interactive"
        assert resolve_profile("cron").name == "cron"

    def test_unknown_name_falls_back_to_interactive(self) -> None:
        assert resolve_profile("unknown-name") == resolve_profile("interactive")

    def test_missing_name_returns_default(self) -> None:
        assert resolve_profile(None).name == DEFAULT_PROFILE_NAME
        assert resolve_profile("").name == DEFAULT_PROFILE_NAME

    def test_override_beats_requested_name(self) -> None:
        assert resolve_profile("interactive", override="cron").name == "cron"

    def test_empty_override_is_ignored(self) -> None:
        assert resolve_profile("cron", override="").name == "cron"

    def test_unknown_override_falls_back_to_default(self) -> None:
        assert resolve_profile("cron", override="bogus").name == DEFAULT_PROFILE_NAME

    def test_name_is_case_insensitive(self) -> None:
        assert resolve_profile("CRON").name == "cron"

    def test_same_host_window_is_wider_than_different_host(self) -> None:
        for profile in DELAY_PROFILES.values():
            same = profile.same_host.max - profile.same_host.min
            different = profile.different_host.max - profile.different_host.min
            assert same > different
            assert profile.same_host.min >= profile.different_host.min


# ---------------------------------------------------------------------------
# compute_delay
# ---------------------------------------------------------------------------


class TestComputeDelay:
    @pytest.mark.parametrize("name", ["interactive", "cron"])
    def test_same_host_within_bounds(self, name: str) -> None:
        profile = resolve_profile(name)
        for _ in range(200):
            v = compute_delay("markets.ft.com", "markets.ft.com", profile)
            assert profile.same_host.min <= v <= profile.same_host.max

    @pytest.mark.parametrize("name", ["interactive", "cron"])
    def test_different_host_within_bounds(self, name: str) -> None:
        profile = resolve_profile(name)
        for _ in range(200):
            v = compute_delay("markets.ft.com", "www.fidelity.co.uk", profile)
            assert profile.different_host.min <= v <= profile.different_host.max

    def test_first_request_is_never_paced(self) -> None:
        for profile in DELAY_PROFILES.values():
            for host in ("", "markets.ft.com", "www.morningstar.co.uk"):
                assert compute_delay("", host, profile) == 0

    def test_returns_int(self) -> None:
        assert isinstance(compute_delay("a.com", "a.com", resolve_profile("cron")), int)

    def test_equal_bounds_return_that_value(self) -> None:
        profile = DelayProfile(
            name="fixed",
            same_host=DelayRange(min=700, max=700),
            different_host=DelayRange(min=100, max=100),
        )
        assert compute_delay("a.com", "a.com", profile) == 700
        assert compute_delay("a.com", "b.com", profile) == 100

    def test_injected_rng_is_deterministic(self) -> None:
        profile = resolve_profile("cron")
        a = [compute_delay("a.com", "a.com", profile, random.Random(42)) for _ in range(3)]
        b = [compute_delay("a.com", "a.com", profile, random.Random(42)) for _ in range(3)]
        assert a == b


# ---------------------------------------------------------------------------
# extract_host
# ---------------------------------------------------------------------------


class TestExtractHost:
    def test_valid_url(self) -> None:
        assert extract_host("https://markets.ft.com/data/funds/tearsheet") == "markets.ft.com"

    def test_host_is_lower_cased(self) -> None:
        assert extract_host("https://WWW.Fidelity.co.uk/x") == "www.fidelity.co.uk"

    @pytest.mark.parametrize("value", [None, "", "not a url", "/relative/path"])
    def test_no_host_returns_empty_string(self, value: str | None) -> None:
        assert extract_host(value) == ""

    def test_unparsable_url_returns_empty_string(self) -> None:
        # Unbalanced IPv6 bracket makes urlsplit raise ValueError.
        assert extract_host("http://[::1") == ""


# ---------------------------------------------------------------------------
# HostPacer
# ---------------------------------------------------------------------------


class TestHostPacer:
    @pytest.mark.asyncio
    async def test_first_request_does_not_sleep(self) -> None:
        pacer = HostPacer(resolve_profile("interactive"))
        with patch("pricepulse.orchestrator.pacing.asyncio.sleep", new=AsyncMock()) as sleep:
            outcome = await pacer.pace("https://markets.ft.com/a")
        assert outcome is WaitOutcome.COMPLETED
        assert pacer.last_delay_ms == 0
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_same_host_sleeps_in_seconds(self) -> None:
        profile = resolve_profile("interactive")
        pacer = HostPacer(profile)
        with patch("pricepulse.orchestrator.pacing.asyncio.sleep", new=AsyncMock()) as sleep:
            await pacer.pace("https://markets.ft.com/a")
            await pacer.pace("https://markets.ft.com/b")
        sleep.assert_awaited_once()
        seconds = sleep.await_args.args[0]
        assert profile.same_host.min / 1000 <= seconds <= profile.same_host.max / 1000
        assert pacer.last_delay_ms == round(seconds * 1000)

    @pytest.mark.asyncio
    async def test_unparsable_url_resets_pacing(self) -> None:
        pacer = HostPacer(resolve_profile("interactive"))
        with patch("pricepulse.orchestrator.pacing.asyncio.sleep", new=AsyncMock()) as sleep:
            await pacer.pace("https://markets.ft.com/a")
            await pacer.pace(None)
            await pacer.pace("https://markets.ft.com/b")
        # Only the hop onto the empty host is paced; the next hop follows "".
        assert sleep.await_count == 1

    @pytest.mark.asyncio
    async def test_reset_forgets_previous_host(self) -> None:
        pacer = HostPacer(resolve_profile("interactive"))
        with patch("pricepulse.orchestrator.pacing.asyncio.sleep", new=AsyncMock()) as sleep:
            await pacer.pace("https://markets.ft.com/a")
            pacer.reset()
            await pacer.pace("https://markets.ft.com/b")
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_uses_cancellation_controller_when_given(self) -> None:
        profile = DelayProfile(
            name="tiny",
            same_host=DelayRange(min=1, max=1),
            different_host=DelayRange(min=1, max=1),
        )
        cancellation = CancellationController()
        pacer = HostPacer(profile, cancellation=cancellation)
        await pacer.pace("https://a.com/")
        assert await pacer.pace("https://a.com/") is WaitOutcome.COMPLETED

        cancellation.cancel_all()
        assert await pacer.pace("https://a.com/") is WaitOutcome.CANCELLED
