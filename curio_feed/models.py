"""Data models for the curio feed engine."""

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

MINERAL_MONDAY_TAG = "mineral-monday"
DISPLAY_DATE_FORMAT = "%Y-%m-%d"

# Fixed-width, zero-padded ISO calendar date; string order == calendar order
_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_display_date(value: str) -> date | None:
    """Parse a ``YYYY-MM-DD`` display date, returning None when malformed."""
    if not isinstance(value, str) or not _ISO_DATE_RE.match(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def _require_str(data: dict, key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise ValueError(f"Field '{key}' must be a string, got {type(value).__name__}")
    return value


def _optional_str(data: dict, key: str) -> str | None:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"Field '{key}' must be a string or null")
    return value


def _optional_float(data: dict, key: str) -> float | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Field '{key}' must be a number or null")
    return float(value)


@dataclass(frozen=True)
class Location:
    """Where an item was found or made."""

    name: str | None = None
    region: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    show_on_map: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Location | None":
        """Decode either the current or the legacy location shape.

        Current payloads carry ``name``/``region``/``latitude``/``longitude``/
        ``showOnMap``; legacy museum payloads carry ``locality``/``state``/
        ``country``. Both normalise into the same canonical fields.
        """
        if data is None:
            return None
        if not isinstance(data, dict):
            raise ValueError("Field 'location' must be an object or null")

        name = _optional_str(data, "name")
        region = _optional_str(data, "region")

        # Legacy shape
        locality = _optional_str(data, "locality")
        state = _optional_str(data, "state")
        country = _optional_str(data, "country")
        if name is None:
            name = locality
        if region is None:
            region = state
        if name is None and region is None:
            name = country

        latitude = _optional_float(data, "latitude")
        longitude = _optional_float(data, "longitude")
        if latitude is None or longitude is None:
            latitude = longitude = None

        show_on_map = data.get("showOnMap")
        if show_on_map is not None and not isinstance(show_on_map, bool):
            raise ValueError("Field 'showOnMap' must be a boolean or null")

        if name is None and region is None and latitude is None:
            return None

        return cls(
            name=name,
            region=region,
            latitude=latitude,
            longitude=longitude,
            show_on_map=bool(show_on_map),
        )

    def to_dict(self) -> dict[str, Any]:
        """Encode in the current wire shape."""
        data: dict[str, Any] = {"showOnMap": self.show_on_map}
        for key, value in (
            ("name", self.name),
            ("region", self.region),
            ("latitude", self.latitude),
            ("longitude", self.longitude),
        ):
            if value is not None:
                data[key] = value
        return data

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def coordinates(self) -> tuple[float, float] | None:
        if not self.has_coordinates:
            return None
        return (self.latitude, self.longitude)

    @property
    def display_name(self) -> str:
        parts = [part for part in (self.name, self.region) if part]
        return ", ".join(parts) if parts else "Unknown"


@dataclass(frozen=True)
class CurioItem:
    """Represents a single catalog entry scheduled for a display date."""

    id: str
    display_date: str  # YYYY-MM-DD, the scheduling key
    title: str
    summary: str
    image_url: str
    thumbnail_url: str
    credit: str
    licence: str
    museum_url: str
    fun_fact: str | None = None
    aspect_ratio: float | None = None
    location: Location | None = None
    tags: tuple[str, ...] = field(default_factory=tuple)
    mineral_monday: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CurioItem":
        """Build an item from its JSON object, raising ValueError when malformed."""
        if not isinstance(data, dict):
            raise ValueError("Item must be a JSON object")

        tags = data.get("tags")
        if not isinstance(tags, list) or not all(isinstance(tag, str) for tag in tags):
            raise ValueError("Field 'tags' must be a list of strings")

        mineral_monday = data.get("mineralMonday")
        if not isinstance(mineral_monday, bool):
            raise ValueError("Field 'mineralMonday' must be a boolean")

        aspect_ratio = _optional_float(data, "aspectRatio")
        if aspect_ratio is not None and aspect_ratio <= 0:
            raise ValueError("Field 'aspectRatio' must be positive")

        return cls(
            id=_require_str(data, "id"),
            display_date=_require_str(data, "displayDate"),
            title=_require_str(data, "title"),
            summary=_require_str(data, "summary"),
            image_url=_require_str(data, "imageUrl"),
            thumbnail_url=_require_str(data, "thumbnailUrl"),
            credit=_require_str(data, "credit"),
            licence=_require_str(data, "licence"),
            museum_url=_require_str(data, "museumUrl"),
            fun_fact=_optional_str(data, "funFact"),
            aspect_ratio=aspect_ratio,
            location=Location.from_dict(data.get("location")),
            tags=tuple(tags),
            mineral_monday=mineral_monday,
        )

    def to_dict(self) -> dict[str, Any]:
        """Encode back into the feed's JSON shape."""
        data: dict[str, Any] = {
            "id": self.id,
            "displayDate": self.display_date,
            "title": self.title,
            "summary": self.summary,
            "imageUrl": self.image_url,
            "thumbnailUrl": self.thumbnail_url,
            "credit": self.credit,
            "licence": self.licence,
            "museumUrl": self.museum_url,
            "tags": list(self.tags),
            "mineralMonday": self.mineral_monday,
        }
        if self.fun_fact is not None:
            data["funFact"] = self.fun_fact
        if self.aspect_ratio is not None:
            data["aspectRatio"] = self.aspect_ratio
        if self.location is not None:
            data["location"] = self.location.to_dict()
        return data

    @property
    def is_mineral_monday(self) -> bool:
        return self.mineral_monday or MINERAL_MONDAY_TAG in self.tags

    @property
    def effective_aspect_ratio(self) -> float:
        """Aspect ratio for layout; square when the feed doesn't say."""
        return self.aspect_ratio if self.aspect_ratio is not None else 1.0

    @property
    def is_landscape(self) -> bool:
        return self.effective_aspect_ratio > 1.0

    @property
    def is_portrait(self) -> bool:
        return self.effective_aspect_ratio < 1.0

    @property
    def display_day(self) -> date | None:
        return parse_display_date(self.display_date)

    @property
    def attribution_text(self) -> str:
        return f"{self.credit} / {self.licence}"

    def is_today(self, today: date | None = None) -> bool:
        today = today or date.today()
        return self.display_day == today

    def display_date_label(self, today: date | None = None) -> str:
        """Return 'Today', 'Yesterday' or a medium date like 'Jan 10, 2026'."""
        day = self.display_day
        if day is None:
            return self.display_date

        today = today or date.today()
        delta = (today - day).days
        if delta == 0:
            return "Today"
        if delta == 1:
            return "Yesterday"
        return f"{day.strftime('%b')} {day.day}, {day.year}"


@dataclass(frozen=True)
class FeedDocument:
    """One versioned snapshot of the remote catalog."""

    version: str
    generated_at: str
    items: tuple[CurioItem, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FeedDocument":
        """Build a feed from the decoded JSON envelope.

        Raises:
            ValueError: If the envelope or any item is malformed
        """
        if not isinstance(data, dict):
            raise ValueError("Feed document must be a JSON object")

        raw_items = data.get("items")
        if not isinstance(raw_items, list):
            raise ValueError("Field 'items' must be a list")

        items = []
        for index, raw_item in enumerate(raw_items):
            try:
                items.append(CurioItem.from_dict(raw_item))
            except ValueError as e:
                raise ValueError(f"Invalid item at index {index}: {e}") from e

        return cls(
            version=_require_str(data, "version"),
            generated_at=_require_str(data, "generatedAt"),
            items=tuple(items),
        )

    @classmethod
    def empty(cls, version: str = "") -> "FeedDocument":
        return cls(version=version, generated_at="", items=())

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "generatedAt": self.generated_at,
            "items": [item.to_dict() for item in self.items],
        }

    def item_by_id(self, item_id: str) -> CurioItem | None:
        return next((item for item in self.items if item.id == item_id), None)

    def item_for_date(self, day: date | datetime) -> CurioItem | None:
        """Find the item scheduled for a date.

        An exact ``displayDate`` match wins (first in list order). Otherwise the
        most recent item dated on or before ``day`` is returned, so a client
        that has not refreshed for a while still shows something.
        """
        target = day.strftime(DISPLAY_DATE_FORMAT)

        for item in self.items:
            if item.display_date == target:
                return item

        best: CurioItem | None = None
        for item in self.items:
            if item.display_day is None or item.display_date > target:
                continue
            # Strict comparison keeps the first of equal dates
            if best is None or item.display_date > best.display_date:
                best = item
        return best

    def recent_items(self, days: int, today: date | None = None) -> list[CurioItem]:
        """Return items dated within the last ``days`` days, newest first.

        Items dated in the future or with an unparseable date are excluded.
        """
        today = today or date.today()
        recent = []
        for item in self.items:
            day = item.display_day
            if day is None:
                continue
            age = (today - day).days
            if 0 <= age < days:
                recent.append((day, item))

        # sorted() is stable, equal dates keep feed order
        recent = sorted(recent, key=lambda entry: entry[0], reverse=True)
        return [item for _, item in recent]
