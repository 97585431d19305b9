"""Scrape service contract consumed by the run orchestrator.

The orchestrator never fetches a price itself.  It calls two operations on
an injected service and reasons only about their outcomes:

* :meth:`BaseScrapeService.run_full_scrape` — one complete pass over
  currency rates, price items and benchmark items.
* :meth:`BaseScrapeService.retry_failed_items` — re-attempt only the items
  listed in a :class:`~pricepulse.core.models.RetryState`.

Both may take arbitrarily long and may raise; a raise aborts the current
run and is recorded on its outcome.

Design decisions
----------------
* **Abstract base class (ABC)** rather than a ``Protocol``: the lifecycle
  helpers (``close``, ``__aenter__``/``__aexit__``) are shared without
  duplication.
* **Loaded by dotted path**: the concrete implementation lives outside this
  package and is named by the ``SCRAPE_SERVICE`` setting
  (``"package.module:factory"``).  The factory is called with the loaded
  :class:`~pricepulse.core.settings.Settings`.

Typical usage::

    class MyScrapeService(BaseScrapeService):
        async def run_full_scrape(self, *, started_by, delay_profile):
            ...

        async def retry_failed_items(self, failed, *, attempt_number, started_by, delay_profile):
            ...

    async with load_scrape_service("myapp.scraping:build", settings) as service:
        ...
"""

from __future__ import annotations

import importlib
import logging
from abc import ABC, abstractmethod
from types import TracebackType
from typing import Any

from pricepulse.core.exceptions import ConfigError
from pricepulse.core.models import DelayProfile, RetryResult, RetryState, RunSummary, StartedBy

__all__ = ["BaseScrapeService", "load_scrape_service"]

logger = logging.getLogger(__name__)


class BaseScrapeService(ABC):
    """Abstract base for scrape service implementations.

    Implementations may also return plain ``dict`` payloads with the same
    keys as :class:`RunSummary` / :class:`RetryResult`; the orchestrator
    validates them at the boundary.
    """

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:  # noqa: B027
        """Release any resources held by this service (no-op by default)."""

    async def __aenter__(self) -> BaseScrapeService:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Core contract
    # ------------------------------------------------------------------

    @abstractmethod
    async def run_full_scrape(
        self,
        *,
        started_by: StartedBy,
        delay_profile: DelayProfile,
    ) -> RunSummary:
        """Refresh currency rates, then every price item, then every benchmark.

        Individual item failures must be reported through the summary's
        failure lists, not raised.

        Raises:
            :class:`~pricepulse.core.exceptions.ScrapeServiceError`: when the
            pass cannot run at all.
        """

    @abstractmethod
    async def retry_failed_items(
        self,
        failed: RetryState,
        *,
        attempt_number: int,
        started_by: StartedBy,
        delay_profile: DelayProfile,
    ) -> RetryResult:
        """Re-attempt the items in *failed* and report those still failing.

        *failed* is a snapshot; implementations must not rely on mutating it.
        Currency rates are refreshed only when ``failed.retry_currency``.
        """


def load_scrape_service(path: str, settings: Any = None) -> BaseScrapeService:
    """Import and build the scrape service named by *path*.

    Args:
        path: ``"package.module:attr"``.  *attr* is either a
            :class:`BaseScrapeService` subclass or a factory callable; it is
            called with *settings* when given, otherwise with no argument.
        settings: Loaded settings forwarded to the factory.

    Returns:
        The constructed service.

    Raises:
        ConfigError: If *path* is empty, malformed, not importable, or does
            not produce a :class:`BaseScrapeService`.
    """
    if not path or ":" not in path:
        raise ConfigError(
            f"SCRAPE_SERVICE must look like 'package.module:factory', got {path!r}"
        )

    module_name, _, attr = path.partition(":")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigError(f"Cannot import scrape service module {module_name!r}: {exc}") from exc

    try:
        factory = getattr(module, attr)
    except AttributeError as exc:
        raise ConfigError(f"Module {module_name!r} has no attribute {attr!r}") from exc

    service = factory(settings) if settings is not None else factory()
    if not isinstance(service, BaseScrapeService):
        raise ConfigError(
            f"{path!r} produced {type(service).__name__}, expected a BaseScrapeService"
        )

    logger.info("Scrape service loaded: %s (%s).", path, type(service).__name__)
    return service
