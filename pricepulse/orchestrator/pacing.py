"""Politeness delays between outbound requests.

Consecutive requests to the **same** host are the collision risk, so they
draw from a wider and longer window than requests that switch host.  Two
profiles exist:

* ``interactive`` — short pauses for a user watching a manual refresh
  (same host 2–5 s, different host 0.5–1 s).
* ``cron`` — longer pauses for unattended scheduled runs
  (same host 5–30 s, different host 1–5 s).

Delays are expressed in **milliseconds**.  :class:`HostPacer` converts to
seconds when it actually sleeps.

Typical usage::

    from pricepulse.orchestrator.pacing import HostPacer, resolve_profile

    pacer = HostPacer(resolve_profile("cron"), cancellation=cancellation)
    for item in items:
        if await pacer.pace(item.url) is WaitOutcome.CANCELLED:
            break
        await fetch(item)
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Mapping
from types import MappingProxyType
from typing import Final
from urllib.parse import urlsplit

from pricepulse.core.models import DelayProfile, DelayRange
from pricepulse.orchestrator.cancellation import CancellationController, WaitOutcome

__all__ = [
    "DEFAULT_PROFILE_NAME",
    "DELAY_PROFILES",
    "HostPacer",
    "compute_delay",
    "extract_host",
    "resolve_profile",
]

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------

#: Profile used when no name (or an unknown name) is requested.
DEFAULT_PROFILE_NAME: Final[str] = "interactive"

DELAY_PROFILES: Final[Mapping[str, DelayProfile]] = MappingProxyType(
    {
        "interactive": DelayProfile(
            name="interactive",
            same_host=DelayRange(min=2000, max=5000),
            different_host=DelayRange(min=500, max=1000),
        ),
        "cron": DelayProfile(
            name="cron",
            same_host=DelayRange(min=5000, max=30000),
            different_host=DelayRange(min=1000, max=5000),
        ),
    }
)


def resolve_profile(name: str | None = None, override: str | None = None) -> DelayProfile:
    """Look up a delay profile by name.

    Args:
        name: Profile requested by the caller.
        override: Explicit runtime setting (e.g. ``SCRAPE_DELAY_PROFILE``);
            takes precedence over *name* when non-empty.

    Returns:
        The matching profile, or the ``interactive`` profile when the chosen
        name is missing or unknown.
    """
    chosen = override or name
    if chosen:
        profile = DELAY_PROFILES.get(chosen.strip().lower())
        if profile is not None:
            return profile
        logger.warning(
            "Unknown delay profile %r — falling back to %r.", chosen, DEFAULT_PROFILE_NAME
        )
    return DELAY_PROFILES[DEFAULT_PROFILE_NAME]


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def extract_host(url: str | None) -> str:
    """Return the lower-cased hostname of *url*, or ``""``.

    Empty, ``None`` and unparsable input all yield ``""`` so callers treat
    "no host" and "parse failure" alike as no pacing constraint.
    """
    if not url:
        return ""
    try:
        return urlsplit(url).hostname or ""
    except (ValueError, TypeError, AttributeError):
        return ""


def compute_delay(
    previous_host: str,
    current_host: str,
    profile: DelayProfile,
    rng: random.Random | None = None,
) -> int:
    """Return the pause in milliseconds before a request to *current_host*.

    Args:
        previous_host: Host of the previous request; ``""`` for the first
            request of a sequence.
        current_host: Host about to be contacted.
        profile: Active delay profile.
        rng: Random source; defaults to the module-level generator.

    Returns:
        ``0`` for the first request, otherwise a uniformly random integer in
        the profile's same-host or different-host window (bounds inclusive).
    """
    if not previous_host:
        return 0
    window = profile.same_host if previous_host == current_host else profile.different_host
    return (rng or random).randint(window.min, window.max)


# ---------------------------------------------------------------------------
# Stateful pacer
# ---------------------------------------------------------------------------


class HostPacer:
    """Remembers the previous host and sleeps before each outbound request.

    One pacer covers one sequence of requests (e.g. all price items of a
    pass).  Call :meth:`reset` before starting an unrelated sequence.

    Args:
        profile: Delay profile to draw pauses from.
        cancellation: When given, sleeps go through
            :meth:`CancellationController.wait` so shutdown interrupts them.
        rng: Random source, injectable for deterministic tests.
    """

    def __init__(
        self,
        profile: DelayProfile,
        *,
        cancellation: CancellationController | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._profile = profile
        self._cancellation = cancellation
        self._rng = rng
        self._previous_host = ""
        self.last_delay_ms = 0

    @property
    def profile(self) -> DelayProfile:
        return self._profile

    def reset(self) -> None:
        self._previous_host = ""
        self.last_delay_ms = 0

    async def pace(self, url: str | None) -> WaitOutcome:
        """Wait the politeness delay for *url*, then record its host.

        Returns:
            :attr:`WaitOutcome.CANCELLED` if shutdown interrupted the pause;
            the caller should stop issuing requests.
        """
        host = extract_host(url)
        delay_ms = compute_delay(self._previous_host, host, self._profile, self._rng)
        self._previous_host = host
        self.last_delay_ms = delay_ms

        if delay_ms <= 0:
            return WaitOutcome.COMPLETED

        logger.debug("Pacing %d ms before request to %s.", delay_ms, host or "<no host>")
        seconds = delay_ms / 1000
        if self._cancellation is not None:
            return await self._cancellation.wait(seconds)
        await asyncio.sleep(seconds)
        return WaitOutcome.COMPLETED
