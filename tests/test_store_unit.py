"""Unit tests for the item store and reconciliation."""

from datetime import datetime
from unittest.mock import patch

from curio_feed.database import Database
from curio_feed.models import Location
from curio_feed.store import ItemStore, PersistedItem
from factories import make_item

NOW = datetime(2026, 1, 12, 9, 30, 0)


class TestPersistedItemUnit:
    """Unit tests for PersistedItem conversions."""

    def test_round_trip_through_item(self):
        item = make_item("items/1", tags=["geology", "mineral-monday"])

        assert PersistedItem.from_item(item).to_item() == item

    def test_location_flattened(self):
        record = PersistedItem.from_item(make_item())

        assert record.location_name == "Ballarat"
        assert record.location_region == "Central Highlands"
        assert record.location_latitude == -37.5622
        assert record.location_show_on_map is True

    def test_no_location(self):
        record = PersistedItem.from_item(make_item(location=None))

        assert record.location_name is None
        assert record.location_show_on_map is False
        assert record.to_item().location is None

    def test_coordinate_only_location_survives(self):
        item = make_item(location={"latitude": 1.0, "longitude": 2.0, "showOnMap": True})

        assert PersistedItem.from_item(item).to_item().location == Location(
            latitude=1.0, longitude=2.0, show_on_map=True
        )

    def test_user_fields_default(self):
        record = PersistedItem.from_item(make_item())

        assert record.is_favourite is False
        assert record.favourited_at is None
        assert record.viewed_at is None


class TestItemStoreUnit:
    """Unit tests for ItemStore."""

    def setup_method(self):
        self.database = Database()
        self.store = ItemStore(self.database)

    def teardown_method(self):
        self.database.close()

    def test_reconcile_creates_records(self):
        items = [make_item("items/1"), make_item("items/2", "2026-01-13")]

        result = self.store.reconcile(items)

        assert result.ok
        assert self.store.count() == 2
        record = self.store.get("items/2")
        assert record.to_item() == items[1]
        assert record.is_favourite is False

    def test_reconcile_updates_display_fields_only(self):
        original = make_item("items/1")
        self.store.reconcile([original])
        self.store.toggle_favourite(original, NOW)
        self.store.mark_viewed(original, NOW)

        updated = make_item(
            "items/1",
            title="Renamed",
            summary="New summary",
            funFact=None,
            imageUrl="https://cdn.example.com/new.webp",
            thumbnailUrl="https://cdn.example.com/new-thumb.webp",
            aspectRatio=0.5,
            credit="New credit",
            licence="CC0",
        )
        self.store.reconcile([updated])

        record = self.store.get("items/1")
        assert record.title == "Renamed"
        assert record.summary == "New summary"
        assert record.fun_fact is None
        assert record.image_url == "https://cdn.example.com/new.webp"
        assert record.thumbnail_url == "https://cdn.example.com/new-thumb.webp"
        assert record.aspect_ratio == 0.5
        assert record.credit == "New credit"
        assert record.licence == "CC0"
        assert record.is_favourite is True
        assert record.favourited_at == NOW
        assert record.viewed_at == NOW

    def test_get_missing(self):
        assert self.store.get("nope") is None
        assert self.store.is_favourite("nope") is False

    def test_reconcile_is_all_or_nothing(self):
        self.store.reconcile([make_item("items/1")])
        bad = PersistedItem.from_item(make_item("items/2"))
        bad.title = None  # violates NOT NULL

        with patch(
            "curio_feed.store.PersistedItem.from_item",
            side_effect=[PersistedItem.from_item(make_item("items/3")), bad],
        ):
            result = self.store.reconcile([make_item("items/3"), make_item("items/2")])

        assert not result.ok
        assert self.store.count() == 1
        assert self.store.get("items/3") is None

    def test_toggle_creates_record_on_demand(self):
        item = make_item("items/9")

        result = self.store.toggle_favourite(item, NOW)

        assert result.ok
        record = self.store.get("items/9")
        assert record.is_favourite is True
        assert record.favourited_at == NOW
        assert record.title == item.title

    def test_toggled_favourite_keeps_coordinate_only_location(self):
        item = make_item("items/7", location={"latitude": 1.0, "longitude": 2.0, "showOnMap": True})

        self.store.toggle_favourite(item, NOW)

        assert self.store.get("items/7").to_item() == item
        assert self.store.get_favourites()[0].to_item().location.coordinates == (1.0, 2.0)

    def test_toggle_twice_restores_state(self):
        item = make_item("items/1")
        self.store.reconcile([item])

        self.store.toggle_favourite(item, NOW)
        self.store.toggle_favourite(item, NOW)

        record = self.store.get("items/1")
        assert record.is_favourite is False
        assert record.favourited_at is None

    def test_mark_viewed_creates_record_and_keeps_favourite(self):
        item = make_item("items/1")

        self.store.mark_viewed(item, NOW)
        record = self.store.get("items/1")
        assert record.viewed_at == NOW
        assert record.is_favourite is False

        self.store.toggle_favourite(item, NOW)
        later = datetime(2026, 1, 13, 8, 0, 0)
        self.store.mark_viewed(item, later)

        record = self.store.get("items/1")
        assert record.viewed_at == later
        assert record.is_favourite is True
        assert record.favourited_at == NOW
        assert self.store.count() == 1

    def test_favourites_ordered_newest_first(self):
        first = make_item("items/1")
        second = make_item("items/2")
        third = make_item("items/3")
        self.store.toggle_favourite(first, datetime(2026, 1, 10, 8, 0, 0))
        self.store.toggle_favourite(second, datetime(2026, 1, 12, 8, 0, 0))
        self.store.toggle_favourite(third, datetime(2026, 1, 11, 8, 0, 0))

        favourites = self.store.get_favourites()

        assert [record.item_id for record in favourites] == ["items/2", "items/3", "items/1"]

    def test_favourites_without_timestamp_sort_last(self):
        self.store.toggle_favourite(make_item("items/1"), NOW)
        self.store.toggle_favourite(make_item("items/2"), NOW)
        with self.database.transaction() as cur:
            cur.execute("UPDATE item SET favourited_at = NULL WHERE item_id = 'items/1'")

        favourites = self.store.get_favourites()

        assert [record.item_id for record in favourites] == ["items/2", "items/1"]
