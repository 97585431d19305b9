"""SQLite database initialisation for the scrape history.

This module is responsible for:

* Opening (or creating) the SQLite file.
* Configuring low-level PRAGMA settings (WAL journal mode, foreign keys).
* Bootstrapping the schema via ``CREATE TABLE IF NOT EXISTS`` — safe to
  call on every startup because the statement is idempotent.

The scheduler also needs to know whether the datastore exists *before*
anything creates it: missed-run detection is skipped on a fresh install.
:func:`database_exists` answers that without opening a connection.

Typical usage::

    from pricepulse.storage.database import open_db

    conn = await open_db(Path("data/pricepulse.db"))
    try:
        ...
    finally:
        await conn.close()
"""

from __future__ import annotations

import logging
from pathlib import Path

import aiosqlite

__all__ = [
    "DEFAULT_DB_PATH",
    "create_schema",
    "database_exists",
    "open_db",
]

logger = logging.getLogger(__name__)

#: Fallback database path when no explicit path is passed to :func:`open_db`.
DEFAULT_DB_PATH: Path = Path("pricepulse.db")

# ---------------------------------------------------------------------------
# DDL
# ---------------------------------------------------------------------------

#: ``scraping_history`` records every fetch attempt, one row per item.
#:
#: Column notes
#: ------------
#: scrape_type      ``"currency"`` | ``"price"`` | ``"benchmark"``.
#: reference_id     Id of the price/benchmark item; NULL for currency rows.
#: scrape_datetime  ISO-8601 UTC timestamp of the attempt.
#: started_by       0 = manual, 1 = scheduled.
#: attempt_number   1 for the initial pass, 2.. for retries.
#: success          Boolean (0/1).
#: error_message    Free-form failure description; NULL on success.
_DDL_SCRAPING_HISTORY = """\
CREATE TABLE IF NOT EXISTS scraping_history (
    id              INTEGER  PRIMARY KEY AUTOINCREMENT,
    scrape_type     TEXT     NOT NULL,
    reference_id    INTEGER,
    scrape_datetime TEXT     NOT NULL,
    started_by      INTEGER  NOT NULL DEFAULT 0,
    attempt_number  INTEGER  NOT NULL DEFAULT 1,
    success         INTEGER  NOT NULL DEFAULT 0,
    error_message   TEXT
)"""

_DDL_IDX_TYPE_SUCCESS = """\
CREATE INDEX IF NOT EXISTS idx_scraping_history_type_success
    ON scraping_history (scrape_type, success, scrape_datetime)"""


def database_exists(path: Path | str | None = None) -> bool:
    """Return ``True`` if the SQLite file at *path* already exists."""
    return Path(path or DEFAULT_DB_PATH).is_file()


async def create_schema(conn: aiosqlite.Connection) -> None:
    """Create all tables and indexes if they do not already exist."""
    await conn.execute(_DDL_SCRAPING_HISTORY)
    await conn.execute(_DDL_IDX_TYPE_SUCCESS)
    await conn.commit()
    logger.debug("Schema bootstrap complete.")


async def open_db(path: Path | str | None = None) -> aiosqlite.Connection:
    """Open (or create) the SQLite database and bootstrap the schema.

    Args:
        path: Filesystem path for the SQLite file.  Defaults to
            :data:`DEFAULT_DB_PATH`.

    Returns:
        An open :class:`aiosqlite.Connection` with ``row_factory`` set to
        :class:`aiosqlite.Row`.  The caller is responsible for closing it.

    Raises:
        aiosqlite.OperationalError: If the file cannot be opened or created.
    """
    db_path = Path(path or DEFAULT_DB_PATH)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    logger.debug("Opening SQLite database at %s", db_path)

    conn: aiosqlite.Connection = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row
    await conn.execute("PRAGMA journal_mode=WAL")
    await conn.execute("PRAGMA foreign_keys=ON")
    await create_schema(conn)
    return conn
