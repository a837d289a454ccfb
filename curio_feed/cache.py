"""Single-slot local cache of the last successfully fetched feed."""

import json
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timedelta

from .database import (
    Database,
    PersistResult,
    Query,
    decode_timestamp,
    encode_timestamp,
    qdb,
)
from .logging_config import create_execution_logger
from .models import CurioItem, FeedDocument

DEFAULT_VALIDITY_SECONDS = 3600.0


@dataclass(frozen=True)
class CachedFeed:
    """A persisted feed snapshot plus the local time it was fetched."""

    version: str
    generated_at: str
    fetched_at: datetime
    items_blob: bytes
    validity_seconds: float = DEFAULT_VALIDITY_SECONDS

    @classmethod
    def from_feed(
        cls,
        feed: FeedDocument,
        fetched_at: datetime,
        validity_seconds: float = DEFAULT_VALIDITY_SECONDS,
    ) -> "CachedFeed":
        blob = json.dumps([item.to_dict() for item in feed.items]).encode("utf-8")
        return cls(
            version=feed.version,
            generated_at=feed.generated_at,
            fetched_at=fetched_at,
            items_blob=blob,
            validity_seconds=validity_seconds,
        )

    def is_valid(self, now: datetime | None = None) -> bool:
        """True while the snapshot is younger than the validity window."""
        now = now or datetime.now()
        return now - self.fetched_at < timedelta(seconds=self.validity_seconds)

    def items(self) -> list[CurioItem]:
        """Decode the items blob; a corrupt blob yields an empty list."""
        logger = create_execution_logger("feed_cache")
        try:
            raw_items = json.loads(self.items_blob)
            if not isinstance(raw_items, list):
                raise ValueError("items blob is not a list")
            return [CurioItem.from_dict(raw) for raw in raw_items]
        except (ValueError, TypeError) as e:
            logger.warning(
                f"Cached items blob is unreadable, treating as empty: {e}",
                feed_version=self.version,
                error=str(e),
            )
            return []

    def to_feed(self) -> FeedDocument:
        return FeedDocument(
            version=self.version,
            generated_at=self.generated_at,
            items=tuple(self.items()),
        )


class FeedCache:
    """Reads and replaces the single cached feed entry."""

    def __init__(
        self,
        database: Database,
        validity_seconds: float = DEFAULT_VALIDITY_SECONDS,
        execution_id: str | None = None,
    ):
        self.database = database
        self.validity_seconds = validity_seconds
        self.logger = create_execution_logger("feed_cache", execution_id)

    def load(self) -> CachedFeed | None:
        """Return the cached entry, or None if there is none or it can't be read."""
        try:
            with self.database.reading() as cur:
                cur.execute(qdb[Query.CacheGetLatest])
                row = cur.fetchone()
            if row is None:
                return None

            blob = row[3]
            if isinstance(blob, str):
                blob = blob.encode("utf-8")

            return CachedFeed(
                version=row[0],
                generated_at=row[1],
                fetched_at=decode_timestamp(row[2]),
                items_blob=blob,
                validity_seconds=self.validity_seconds,
            )
        except (sqlite3.Error, ValueError, TypeError) as err:
            self.logger.error(
                f"{err.__class__.__name__} loading cached feed, ignoring cache: {err}",
                error=str(err),
            )
            return None

    def replace(self, feed: FeedDocument, fetched_at: datetime) -> PersistResult:
        """Store ``feed`` as the only cache entry.

        The new row is inserted before the old ones are deleted, inside one
        transaction, so there is never a moment with no cache entry.
        """
        entry = CachedFeed.from_feed(feed, fetched_at, self.validity_seconds)
        try:
            with self.database.transaction() as cur:
                cur.execute(
                    qdb[Query.CacheInsert],
                    (
                        entry.version,
                        entry.generated_at,
                        encode_timestamp(entry.fetched_at),
                        entry.items_blob,
                    ),
                )
                cur.execute(qdb[Query.CacheDeleteOthers], (cur.lastrowid,))
        except sqlite3.Error as err:
            self.logger.error(
                f"{err.__class__.__name__} replacing cached feed: {err}",
                feed_version=feed.version,
                error=str(err),
            )
            return PersistResult.failure(err)

        self.logger.info(
            "Cached feed replaced",
            feed_version=feed.version,
            items_count=len(feed.items),
        )
        return PersistResult.success()

    def count(self) -> int:
        with self.database.reading() as cur:
            cur.execute(qdb[Query.CacheCount])
            return cur.fetchone()[0]
