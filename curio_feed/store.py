"""Durable item store: feed display fields overlaid with user-owned state."""

import json
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from .database import (
    Database,
    PersistResult,
    Query,
    decode_timestamp,
    encode_timestamp,
    qdb,
)
from .logging_config import create_execution_logger
from .models import CurioItem, Location


@dataclass
class PersistedItem:
    """One stored item: a copy of its display fields plus local user state."""

    item_id: str
    display_date: str
    title: str
    summary: str
    image_url: str
    thumbnail_url: str
    credit: str
    licence: str
    museum_url: str
    fun_fact: str | None = None
    aspect_ratio: float | None = None

    # Location, flattened
    location_name: str | None = None
    location_region: str | None = None
    location_latitude: float | None = None
    location_longitude: float | None = None
    location_show_on_map: bool = False

    tags: list[str] = field(default_factory=list)
    mineral_monday: bool = False

    # User state, never written by a feed refresh
    is_favourite: bool = False
    favourited_at: datetime | None = None
    viewed_at: datetime | None = None

    @classmethod
    def from_item(cls, item: CurioItem) -> "PersistedItem":
        location = item.location
        return cls(
            item_id=item.id,
            display_date=item.display_date,
            title=item.title,
            summary=item.summary,
            image_url=item.image_url,
            thumbnail_url=item.thumbnail_url,
            credit=item.credit,
            licence=item.licence,
            museum_url=item.museum_url,
            fun_fact=item.fun_fact,
            aspect_ratio=item.aspect_ratio,
            location_name=location.name if location else None,
            location_region=location.region if location else None,
            location_latitude=location.latitude if location else None,
            location_longitude=location.longitude if location else None,
            location_show_on_map=location.show_on_map if location else False,
            tags=list(item.tags),
            mineral_monday=item.mineral_monday,
        )

    @classmethod
    def from_row(cls, row: tuple) -> "PersistedItem":
        return cls(
            item_id=row[0],
            display_date=row[1],
            title=row[2],
            summary=row[3],
            fun_fact=row[4],
            image_url=row[5],
            thumbnail_url=row[6],
            aspect_ratio=row[7],
            credit=row[8],
            licence=row[9],
            museum_url=row[10],
            location_name=row[11],
            location_region=row[12],
            location_latitude=row[13],
            location_longitude=row[14],
            location_show_on_map=bool(row[15]),
            tags=json.loads(row[16]),
            mineral_monday=bool(row[17]),
            is_favourite=bool(row[18]),
            favourited_at=decode_timestamp(row[19]),
            viewed_at=decode_timestamp(row[20]),
        )

    def display_values(self) -> tuple:
        """Column values written by reconciliation, in ItemReconcile order."""
        return (
            self.item_id,
            self.display_date,
            self.title,
            self.summary,
            self.fun_fact,
            self.image_url,
            self.thumbnail_url,
            self.aspect_ratio,
            self.credit,
            self.licence,
            self.museum_url,
            self.location_name,
            self.location_region,
            self.location_latitude,
            self.location_longitude,
            self.location_show_on_map,
            json.dumps(self.tags),
            self.mineral_monday,
        )

    def row_values(self) -> tuple:
        """All column values, in ITEM_COLUMNS order."""
        return self.display_values() + (
            self.is_favourite,
            encode_timestamp(self.favourited_at) if self.favourited_at else None,
            encode_timestamp(self.viewed_at) if self.viewed_at else None,
        )

    def to_item(self) -> CurioItem:
        location = None
        if (
            self.location_name is not None
            or self.location_region is not None
            or self.location_latitude is not None
        ):
            location = Location(
                name=self.location_name,
                region=self.location_region,
                latitude=self.location_latitude,
                longitude=self.location_longitude,
                show_on_map=self.location_show_on_map,
            )

        return CurioItem(
            id=self.item_id,
            display_date=self.display_date,
            title=self.title,
            summary=self.summary,
            image_url=self.image_url,
            thumbnail_url=self.thumbnail_url,
            credit=self.credit,
            licence=self.licence,
            museum_url=self.museum_url,
            fun_fact=self.fun_fact,
            aspect_ratio=self.aspect_ratio,
            location=location,
            tags=tuple(self.tags),
            mineral_monday=self.mineral_monday,
        )


class ItemStore:
    """Keyed-by-id collection of PersistedItem records."""

    def __init__(self, database: Database, execution_id: str | None = None):
        self.database = database
        self.logger = create_execution_logger("item_store", execution_id)

    def reconcile(self, items: Iterable[CurioItem]) -> PersistResult:
        """Merge freshly fetched items into the store in one transaction.

        New ids get a record with default user state. Existing records only
        have their display fields refreshed; favourite and viewed state is
        left alone.
        """
        records = [PersistedItem.from_item(item) for item in items]
        try:
            with self.database.transaction() as cur:
                cur.executemany(
                    qdb[Query.ItemReconcile],
                    [record.display_values() for record in records],
                )
        except sqlite3.Error as err:
            self.logger.error(
                f"{err.__class__.__name__} reconciling {len(records)} items: {err}",
                error=str(err),
            )
            return PersistResult.failure(err)

        self.logger.info("Item store reconciled", items_count=len(records))
        return PersistResult.success()

    def get(self, item_id: str) -> PersistedItem | None:
        with self.database.reading() as cur:
            cur.execute(qdb[Query.ItemGetByID], (item_id,))
            row = cur.fetchone()
        return PersistedItem.from_row(row) if row else None

    def is_favourite(self, item_id: str) -> bool:
        with self.database.reading() as cur:
            cur.execute(qdb[Query.ItemIsFavourite], (item_id,))
            row = cur.fetchone()
        return bool(row and row[0])

    def get_favourites(self) -> list[PersistedItem]:
        """All favourite records, most recently favourited first."""
        with self.database.reading() as cur:
            cur.execute(qdb[Query.ItemGetFavourites])
            records = [PersistedItem.from_row(row) for row in cur.fetchall()]

        stamped = [r for r in records if r.favourited_at is not None]
        unstamped = [r for r in records if r.favourited_at is None]
        stamped.sort(key=lambda r: r.favourited_at, reverse=True)
        return stamped + unstamped

    def count(self) -> int:
        with self.database.reading() as cur:
            cur.execute(qdb[Query.ItemCount])
            return cur.fetchone()[0]

    def toggle_favourite(self, item: CurioItem, now: datetime) -> PersistResult:
        """Flip the favourite flag, creating the record from ``item`` if needed."""
        try:
            with self.database.transaction() as cur:
                cur.execute(qdb[Query.ItemIsFavourite], (item.id,))
                row = cur.fetchone()
                if row is None:
                    record = PersistedItem.from_item(item)
                    record.is_favourite = True
                    record.favourited_at = now
                    cur.execute(qdb[Query.ItemInsert], record.row_values())
                else:
                    favourite = not bool(row[0])
                    stamp = encode_timestamp(now) if favourite else None
                    cur.execute(qdb[Query.ItemSetFavourite], (favourite, stamp, item.id))
        except sqlite3.Error as err:
            self.logger.error(
                f"{err.__class__.__name__} toggling favourite: {err}",
                item_id=item.id,
                error=str(err),
            )
            return PersistResult.failure(err)
        return PersistResult.success()

    def mark_viewed(self, item: CurioItem, now: datetime) -> PersistResult:
        """Stamp ``viewed_at``, creating the record from ``item`` if needed."""
        try:
            with self.database.transaction() as cur:
                cur.execute(qdb[Query.ItemSetViewed], (encode_timestamp(now), item.id))
                if cur.rowcount == 0:
                    record = PersistedItem.from_item(item)
                    record.viewed_at = now
                    cur.execute(qdb[Query.ItemInsert], record.row_values())
        except sqlite3.Error as err:
            self.logger.error(
                f"{err.__class__.__name__} marking item viewed: {err}",
                item_id=item.id,
                error=str(err),
            )
            return PersistResult.failure(err)
        return PersistResult.success()
