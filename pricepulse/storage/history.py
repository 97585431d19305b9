"""Scrape-history repository and the scheduler's persistence adapter.

:class:`ScrapeHistoryRepository` is the data-access object for the
``scraping_history`` table.  Scrape service implementations call
:meth:`~ScrapeHistoryRepository.record` once per fetched item; the scheduler
only ever asks one question of the table — *when did the last successful
price fetch happen?* — through :class:`SqliteRunHistory`.

:class:`SqliteRunHistory` opens a short-lived connection per query so the
scheduler never holds a connection across the (potentially week-long) gap
between cron ticks.

Typical usage::

    history = SqliteRunHistory(settings.database_path_resolved)
    if history.exists():
        last = await history.last_successful_run("price")
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path

import aiosqlite

from pricepulse.core.exceptions import StorageError
from pricepulse.core.models import StartedBy
from pricepulse.storage.database import database_exists, open_db

__all__ = ["ScrapeHistoryRepository", "SqliteRunHistory", "parse_timestamp"]

logger = logging.getLogger(__name__)


def parse_timestamp(value: str) -> datetime:
    """Parse a stored ISO-8601 timestamp; naive values are assumed UTC."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


class ScrapeHistoryRepository:
    """Data-access object for the ``scraping_history`` table.

    Owns no connection lifecycle — the caller supplies an open connection
    (see :func:`~pricepulse.storage.database.open_db`) and closes it.

    Args:
        conn: Open, configured :class:`aiosqlite.Connection`.
    """

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def record(
        self,
        scrape_type: str,
        *,
        success: bool,
        reference_id: int | None = None,
        started_by: StartedBy = StartedBy.MANUAL,
        attempt_number: int = 1,
        error_message: str | None = None,
        scraped_at: datetime | None = None,
    ) -> int:
        """Insert one attempt row and return its row id.

        Raises:
            StorageError: If the insert fails.
        """
        ts = (scraped_at or datetime.now(UTC)).astimezone(UTC).isoformat()
        try:
            cursor = await self._conn.execute(
                """
                INSERT INTO scraping_history
                    (scrape_type, reference_id, scrape_datetime, started_by,
                     attempt_number, success, error_message)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    scrape_type,
                    reference_id,
                    ts,
                    int(started_by),
                    attempt_number,
                    1 if success else 0,
                    error_message,
                ),
            )
            await self._conn.commit()
        except aiosqlite.Error as exc:
            raise StorageError(f"Failed to record {scrape_type} scrape: {exc}") from exc

        logger.debug(
            "Recorded %s scrape ref=%s attempt=%d success=%s.",
            scrape_type,
            reference_id,
            attempt_number,
            success,
        )
        return int(cursor.lastrowid or 0)

    async def last_successful(self, scrape_type: str) -> datetime | None:
        """Return the timestamp of the most recent successful *scrape_type* row.

        Raises:
            StorageError: If the query fails.
        """
        try:
            cursor = await self._conn.execute(
                """
                SELECT scrape_datetime
                  FROM scraping_history
                 WHERE success = 1 AND scrape_type = ?
                 ORDER BY scrape_datetime DESC
                 LIMIT 1
                """,
                (scrape_type,),
            )
            row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StorageError(f"Failed to query {scrape_type} history: {exc}") from exc

        if row is None:
            return None
        return parse_timestamp(row["scrape_datetime"])

    async def count(self, scrape_type: str | None = None, *, success: bool | None = None) -> int:
        """Return the number of rows, optionally filtered by type and outcome."""
        clauses: list[str] = []
        params: list[object] = []
        if scrape_type is not None:
            clauses.append("scrape_type = ?")
            params.append(scrape_type)
        if success is not None:
            clauses.append("success = ?")
            params.append(1 if success else 0)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        cursor = await self._conn.execute(f"SELECT COUNT(*) FROM scraping_history{where}", params)  # noqa: S608
        row = await cursor.fetchone()
        return int(row[0]) if row else 0


class SqliteRunHistory:
    """Persistence collaborator used by the scheduler for missed-run detection.

    Args:
        path: Path of the SQLite file.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        """``True`` once the datastore has been created."""
        return database_exists(self._path)

    async def last_successful_run(self, category: str) -> datetime | None:
        """Return the last successful scrape timestamp for *category*."""
        conn = await open_db(self._path)
        try:
            return await ScrapeHistoryRepository(conn).last_successful(category)
        finally:
            await conn.close()
