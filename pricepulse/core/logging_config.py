"""Pricepulse logging configuration.

Call ``configure_logging()`` once at process startup (``__main__`` does).
Every other module defines its own logger at module scope::

    import logging
    logger = logging.getLogger(__name__)

Each refresh run binds a short id into :data:`RUN_ID_CTX`; the handler's
:class:`RunContextFilter` copies it onto every record so that all lines of
one run (initial pass, retry waits, retry attempts) can be grouped, in text
as ``[a3f2b1c0]`` and in JSON as ``"run_id"``.

Environment fallbacks (read at call time):
    LOG_LEVEL   DEBUG | INFO | WARNING | ERROR | CRITICAL   (default: INFO)
    LOG_FORMAT  text | json                                 (default: text)
"""

from __future__ import annotations

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import IO, Any

__all__ = ["configure_logging", "JsonFormatter", "RUN_ID_CTX", "RunContextFilter"]

#: Identifier of the refresh run executing in the current task, ``"-"``
#: outside a run.  Bound by :class:`~pricepulse.orchestrator.runner.RunOrchestrator`
#: for the duration of a run; each run has its own task, so the cron trigger
#: and status queries never see it.
RUN_ID_CTX: ContextVar[str] = ContextVar("run_id", default="-")

_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_FORMATS = ("text", "json")

_TEXT_FORMAT = "%(asctime)s %(levelname)-8s [%(run_id)s] %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Only raised to WARNING when the root level is above DEBUG.
_CHATTY_LOGGERS = ("asyncio", "aiosqlite")


class RunContextFilter(logging.Filter):
    """Copy :data:`RUN_ID_CTX` onto each record as ``record.run_id``."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        record.run_id = RUN_ID_CTX.get()
        return True


def _pick(value: str | None, env_var: str, default: str, allowed: tuple[str, ...]) -> str:
    chosen = value or os.environ.get(env_var) or default
    normalised = chosen.upper() if allowed[0].isupper() else chosen.lower()
    if normalised not in allowed:
        raise ValueError(f"Unknown {env_var} {chosen!r}. Must be one of: {', '.join(allowed)}")
    return normalised


def configure_logging(
    level: str | None = None,
    fmt: str | None = None,
    *,
    force: bool = False,
    stream: IO[str] | None = None,
) -> logging.Handler | None:
    """Install a single stderr handler on the root logger.

    Args:
        level: Level name; falls back to ``$LOG_LEVEL`` then ``INFO``.
        fmt: ``"text"`` or ``"json"``; falls back to ``$LOG_FORMAT`` then
            ``text``.
        force: Replace existing root handlers.  Without it, an already
            configured root logger only has its level adjusted.
        stream: Destination stream, ``sys.stderr`` by default.

    Returns:
        The installed handler, or ``None`` when the existing configuration
        was kept.

    Raises:
        ValueError: If *level* or *fmt* is not recognised.
    """
    resolved_level = _pick(level, "LOG_LEVEL", "INFO", _LEVELS)
    resolved_fmt = _pick(fmt, "LOG_FORMAT", "text", _FORMATS)

    root = logging.getLogger()
    root.setLevel(resolved_level)
    if root.handlers and not force:
        return None

    for existing in list(root.handlers):
        root.removeHandler(existing)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(resolved_level)
    handler.addFilter(RunContextFilter())
    handler.setFormatter(
        JsonFormatter()
        if resolved_fmt == "json"
        else logging.Formatter(fmt=_TEXT_FORMAT, datefmt=_DATE_FORMAT)
    )
    root.addHandler(handler)

    chatty_level = logging.NOTSET if resolved_level == "DEBUG" else logging.WARNING
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(chatty_level)
    return handler


class JsonFormatter(logging.Formatter):
    """Render each record as one JSON line.

    Example::

        {"ts": "2026-03-07T08:00:04.117Z", "level": "INFO",
         "logger": "pricepulse.orchestrator.runner", "run_id": "a3f2b1c0",
         "message": "Retry attempt 2/5 ...", "extra": {}}

    ``extra`` holds any attributes passed through ``logger.info(...,
    extra={...})``.  ``exc_info`` and ``stack_info`` appear only when set.
    Values that are not JSON-native are rendered with ``str()``.
    """

    # Attribute names every LogRecord carries, plus those added by formatting.
    _STANDARD_ATTRS: frozenset[str] = frozenset(
        vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
    ) | {"message", "asctime", "run_id"}

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003
        created = datetime.fromtimestamp(record.created, tz=UTC)
        payload: dict[str, Any] = {
            "ts": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "run_id": getattr(record, "run_id", RUN_ID_CTX.get()),
            "message": record.getMessage(),
            "extra": {
                key: value
                for key, value in vars(record).items()
                if key not in self._STANDARD_ATTRS
            },
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        elif record.exc_text:
            payload["exc_info"] = record.exc_text
        if record.stack_info:
            payload["stack_info"] = self.formatStack(record.stack_info)
        return json.dumps(payload, default=str)
