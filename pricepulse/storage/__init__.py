"""SQLite-backed scrape history consulted for missed-run detection."""

from pricepulse.storage.database import DEFAULT_DB_PATH, create_schema, database_exists, open_db
from pricepulse.storage.history import ScrapeHistoryRepository, SqliteRunHistory, parse_timestamp

__all__ = [
    "DEFAULT_DB_PATH",
    "open_db",
    "create_schema",
    "database_exists",
    "ScrapeHistoryRepository",
    "SqliteRunHistory",
    "parse_timestamp",
]
