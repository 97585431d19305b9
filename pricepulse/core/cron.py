"""Pure cron-expression helpers.

Every function here is a pure function of a cron expression, a time zone and
a reference instant.  The scheduler uses :func:`next_fire_time` both for its
own trigger loop and for ``get_next_run()``, and :func:`previous_fire_time`
for missed-run detection, without holding any cron object between calls.

Expressions are evaluated with :mod:`croniter` in the configured IANA time
zone; results are always returned as timezone-aware UTC datetimes.

Typical usage::

    from datetime import UTC, datetime
    from pricepulse.core.cron import next_fire_time, previous_fire_time

    now = datetime.now(UTC)
    upcoming = next_fire_time("0 8 * * 6", now)
    last_due = previous_fire_time("0 8 * * 6", now)
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from zoneinfo import ZoneInfo

from croniter import CroniterBadDateError, croniter  # type: ignore[import-untyped]

from pricepulse.core.exceptions import ConfigError

__all__ = [
    "is_valid_cron",
    "validate_cron",
    "next_fire_time",
    "previous_fire_time",
]

logger = logging.getLogger(__name__)


def is_valid_cron(expression: str) -> bool:
    """Return ``True`` if *expression* is a parseable cron expression."""
    if not expression or not expression.strip():
        return False
    try:
        return bool(croniter.is_valid(expression.strip()))
    except Exception:  # noqa: BLE001
        return False


def validate_cron(expression: str) -> str:
    """Return the stripped *expression* or raise :exc:`ConfigError`.

    Syntactically valid expressions that can never match a date, such as
    ``"0 0 30 2 *"``, are rejected as well.
    """
    if not is_valid_cron(expression):
        raise ConfigError(f"Invalid cron expression: {expression!r}")
    stripped = expression.strip()
    try:
        croniter(stripped, datetime.now(UTC)).get_next(datetime)
    except CroniterBadDateError as exc:
        raise ConfigError(f"Cron expression never fires: {expression!r}") from exc
    return stripped


def _localise(reference: datetime, timezone: str) -> datetime:
    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=UTC)
    return reference.astimezone(ZoneInfo(timezone))


def next_fire_time(expression: str, reference: datetime, timezone: str = "UTC") -> datetime:
    """Return the first firing time strictly after *reference*.

    Args:
        expression: Cron expression (validated by the caller).
        reference: Reference instant; naive values are treated as UTC.
        timezone: IANA zone the expression is evaluated in.

    Returns:
        Timezone-aware UTC datetime.
    """
    local = _localise(reference, timezone)
    fire: datetime = croniter(expression, local).get_next(datetime)
    return fire.astimezone(UTC)


def previous_fire_time(expression: str, reference: datetime, timezone: str = "UTC") -> datetime:
    """Return the most recent firing time strictly before *reference*.

    Args:
        expression: Cron expression (validated by the caller).
        reference: Reference instant; naive values are treated as UTC.
        timezone: IANA zone the expression is evaluated in.

    Returns:
        Timezone-aware UTC datetime.
    """
    local = _localise(reference, timezone)
    it = croniter(expression, local)
    fire: datetime = it.get_prev(datetime)
    if fire >= local:
        fire = it.get_prev(datetime)
    return fire.astimezone(UTC)
