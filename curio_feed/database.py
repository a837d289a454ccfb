"""SQLite persistence for the curio feed engine.

One ``Database`` is one persistence session. Every read and write goes through
a single re-entrant lock, so a reader on any thread never observes a
half-applied transaction.
"""

import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from enum import Enum, auto
from pathlib import Path
from threading import RLock
from typing import Final, Iterator

from dateutil import parser as date_parser

from .errors import DatabaseError
from .logging_config import create_execution_logger

MEMORY_DB: Final[str] = ":memory:"

qinit: Final[list[str]] = [
    """
CREATE TABLE IF NOT EXISTS feed_cache (
    id INTEGER PRIMARY KEY,
    version TEXT NOT NULL,
    generated_at TEXT NOT NULL,
    fetched_at TEXT NOT NULL,
    items_blob BLOB NOT NULL
)
    """,
    """
CREATE TABLE IF NOT EXISTS item (
    id INTEGER PRIMARY KEY,
    item_id TEXT UNIQUE NOT NULL,
    display_date TEXT NOT NULL,
    title TEXT NOT NULL,
    summary TEXT NOT NULL,
    fun_fact TEXT,
    image_url TEXT NOT NULL,
    thumbnail_url TEXT NOT NULL,
    aspect_ratio REAL,
    credit TEXT NOT NULL,
    licence TEXT NOT NULL,
    museum_url TEXT NOT NULL,
    location_name TEXT,
    location_region TEXT,
    location_latitude REAL,
    location_longitude REAL,
    location_show_on_map INTEGER NOT NULL DEFAULT 0,
    tags TEXT NOT NULL DEFAULT '[]',
    mineral_monday INTEGER NOT NULL DEFAULT 0,
    is_favourite INTEGER NOT NULL DEFAULT 0,
    favourited_at TEXT,
    viewed_at TEXT,
    CHECK (is_favourite IN (0, 1)),
    CHECK (aspect_ratio IS NULL OR aspect_ratio > 0)
)
    """,
    "CREATE INDEX IF NOT EXISTS item_fav_idx ON item (is_favourite)",
]

# Column order shared by every SELECT on the item table
ITEM_COLUMNS: Final[str] = """
    item_id,
    display_date,
    title,
    summary,
    fun_fact,
    image_url,
    thumbnail_url,
    aspect_ratio,
    credit,
    licence,
    museum_url,
    location_name,
    location_region,
    location_latitude,
    location_longitude,
    location_show_on_map,
    tags,
    mineral_monday,
    is_favourite,
    favourited_at,
    viewed_at
"""


class Query(Enum):
    """Query identifies the various operations we perform on the database."""

    CacheGetLatest = auto()
    CacheInsert = auto()
    CacheDeleteOthers = auto()
    CacheCount = auto()

    ItemGetByID = auto()
    ItemInsert = auto()
    ItemReconcile = auto()
    ItemGetFavourites = auto()
    ItemIsFavourite = auto()
    ItemSetFavourite = auto()
    ItemSetViewed = auto()
    ItemCount = auto()


qdb: Final[dict[Query, str]] = {
    Query.CacheGetLatest: """
SELECT
    version,
    generated_at,
    fetched_at,
    items_blob
FROM feed_cache
ORDER BY id DESC
LIMIT 1
    """,
    Query.CacheInsert: """
INSERT INTO feed_cache (version, generated_at, fetched_at, items_blob)
                VALUES (      ?,            ?,          ?,          ?)
    """,
    Query.CacheDeleteOthers: "DELETE FROM feed_cache WHERE id <> ?",
    Query.CacheCount: "SELECT COUNT(id) FROM feed_cache",
    Query.ItemGetByID: f"SELECT {ITEM_COLUMNS} FROM item WHERE item_id = ?",
    Query.ItemInsert: f"""
INSERT INTO item ({ITEM_COLUMNS})
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    """,
    # Only display fields are refreshed; user-owned columns stay untouched
    Query.ItemReconcile: """
INSERT INTO item (
    item_id,
    display_date,
    title,
    summary,
    fun_fact,
    image_url,
    thumbnail_url,
    aspect_ratio,
    credit,
    licence,
    museum_url,
    location_name,
    location_region,
    location_latitude,
    location_longitude,
    location_show_on_map,
    tags,
    mineral_monday
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT (item_id) DO UPDATE SET
    title = excluded.title,
    summary = excluded.summary,
    fun_fact = excluded.fun_fact,
    image_url = excluded.image_url,
    thumbnail_url = excluded.thumbnail_url,
    aspect_ratio = excluded.aspect_ratio,
    credit = excluded.credit,
    licence = excluded.licence
    """,
    Query.ItemGetFavourites: f"SELECT {ITEM_COLUMNS} FROM item WHERE is_favourite = 1",
    Query.ItemIsFavourite: "SELECT is_favourite FROM item WHERE item_id = ?",
    Query.ItemSetFavourite: """
UPDATE item SET is_favourite = ?, favourited_at = ? WHERE item_id = ?
    """,
    Query.ItemSetViewed: "UPDATE item SET viewed_at = ? WHERE item_id = ?",
    Query.ItemCount: "SELECT COUNT(id) FROM item",
}


@dataclass(frozen=True)
class PersistResult:
    """Outcome of a best-effort write to the local store."""

    ok: bool
    error: Exception | None = None

    @classmethod
    def success(cls) -> "PersistResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, error: Exception) -> "PersistResult":
        return cls(ok=False, error=error)


def encode_timestamp(stamp: datetime) -> str:
    return stamp.isoformat(timespec="microseconds")


def decode_timestamp(raw: str | None) -> datetime | None:
    if raw is None:
        return None
    return date_parser.isoparse(raw)


class Database:
    """Database wraps the SQLite connection shared by the cache and the item store."""

    def __init__(self, path: Path | str = MEMORY_DB, execution_id: str | None = None):
        """Open (and if necessary initialize) the database.

        Args:
            path: Filesystem path of the database, or ":memory:"
            execution_id: Execution ID for logging context
        """
        self.path = str(path)
        self.logger = create_execution_logger("database", execution_id)
        self.lock = RLock()

        try:
            self.db = sqlite3.connect(self.path, check_same_thread=False)
            # Transactions are opened explicitly in transaction()
            self.db.isolation_level = None
            if self.path != MEMORY_DB:
                self.db.execute("PRAGMA journal_mode = WAL")
            self._create_schema()
        except sqlite3.Error as err:
            msg = f"{err.__class__.__name__} opening database {self.path}: {err}"
            self.logger.error(msg, error=str(err))
            raise DatabaseError(msg) from err

        self.logger.info("Database opened", db_path=self.path)

    def _create_schema(self) -> None:
        with self.transaction() as cur:
            for query in qinit:
                cur.execute(query)

    def close(self) -> None:
        """Close the database connection."""
        with self.lock:
            self.db.close()

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, ex_type, ex_val, tb) -> None:
        self.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Cursor]:
        """Run a block of statements atomically.

        The block is committed if it completes and rolled back if it raises.
        Transactions must not be nested.
        """
        with self.lock:
            cur = self.db.cursor()
            cur.execute("BEGIN IMMEDIATE")
            try:
                yield cur
                cur.execute("COMMIT")
            except BaseException:
                if self.db.in_transaction:
                    cur.execute("ROLLBACK")
                raise

    @contextmanager
    def reading(self) -> Iterator[sqlite3.Cursor]:
        """Yield a cursor for read-only statements under the session lock."""
        with self.lock:
            yield self.db.cursor()
