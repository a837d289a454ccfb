"""Command-line consumer of the curio feed engine."""

import argparse
import json
import sys
from dataclasses import dataclass
from datetime import date
from typing import Any

from .cache import FeedCache
from .config import Config, FeedConfig
from .database import Database
from .errors import FeedError
from .favourites import FavouritesService
from .feed_service import FeedService
from .logging_config import create_execution_logger, new_execution_id, setup_structured_logging
from .models import CurioItem
from .store import ItemStore, PersistedItem

# Commands that may go to the network; the rest only read or write the store
FEED_COMMANDS = frozenset({"today", "date", "recent"})


@dataclass
class Services:
    """Everything a consumer needs for one persistence session."""

    database: Database
    feed: FeedService
    favourites: FavouritesService


def create_services(config: FeedConfig, execution_id: str | None = None) -> Services:
    """Open the store and build one engine for this session."""
    database = Database(config.db_path, execution_id=execution_id)
    cache = FeedCache(database, config.cache_validity_seconds, execution_id=execution_id)
    store = ItemStore(database, execution_id=execution_id)
    return Services(
        database=database,
        feed=FeedService(config, cache, store, execution_id=execution_id),
        favourites=FavouritesService(store, execution_id=execution_id),
    )


def item_to_json(item: CurioItem, services: Services) -> dict[str, Any]:
    body = item.to_dict()
    body["isMineralMonday"] = item.is_mineral_monday
    body["displayDateLabel"] = item.display_date_label(services.feed.clock().date())
    body["attribution"] = item.attribution_text
    body["isFavourite"] = services.favourites.is_favourite(item.id)
    if item.location is not None:
        body["locationName"] = item.location.display_name
    return body


def record_to_json(record: PersistedItem) -> dict[str, Any]:
    body = record.to_item().to_dict()
    body["favouritedAt"] = record.favourited_at.isoformat() if record.favourited_at else None
    body["viewedAt"] = record.viewed_at.isoformat() if record.viewed_at else None
    return body


def _find_item(services: Services, item_id: str) -> CurioItem:
    """Resolve an item from local storage only; never touches the network."""
    stored = services.feed.store.get(item_id)
    if stored is not None:
        return stored.to_item()

    cached = services.feed.cache.load()
    item = cached.to_feed().item_by_id(item_id) if cached is not None else None
    if item is None:
        raise LookupError(f"Unknown item: {item_id}")
    return item


def run_command(args: argparse.Namespace, services: Services) -> dict[str, Any]:
    """Execute one CLI command and return its JSON body."""
    feed_service = services.feed
    fetched = args.command in FEED_COMMANDS

    if args.command == "today":
        item = feed_service.fetch_todays_item(force_refresh=args.refresh)
        body = {"item": item_to_json(item, services)}
    elif args.command == "date":
        item = feed_service.fetch_item_for_date(args.day, force_refresh=args.refresh)
        body = {"item": item_to_json(item, services) if item else None}
    elif args.command == "recent":
        items = feed_service.fetch_recent_items(args.days, force_refresh=args.refresh)
        body = {"items": [item_to_json(item, services) for item in items]}
    elif args.command == "favourites":
        records = services.favourites.fetch_favourites()
        body = {"items": [record_to_json(record) for record in records]}
    elif args.command == "favourite":
        item = _find_item(services, args.item_id)
        result = services.favourites.toggle_favourite(item)
        body = {
            "itemId": item.id,
            "isFavourite": services.favourites.is_favourite(item.id),
            "saved": result.ok,
        }
    elif args.command == "viewed":
        item = _find_item(services, args.item_id)
        result = services.favourites.mark_as_viewed(item)
        body = {"itemId": item.id, "saved": result.ok}
    else:
        raise ValueError(f"Unknown command: {args.command}")

    # Degraded fetches still succeed but say so
    if fetched and feed_service.is_degraded:
        body["warning"] = feed_service.error.message
    return body


def _parse_day(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Expected YYYY-MM-DD, got {value!r}") from e


def handle_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Curiosity of the day, offline-first.")
    parser.add_argument("--db", default=None, help="Path to the local SQLite store.")
    parser.add_argument(
        "--refresh", action="store_true", help="Ignore a valid cache and refetch the feed."
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("today", help="Show today's item.")
    date_parser = commands.add_parser("date", help="Show the item for a date.")
    date_parser.add_argument("day", type=_parse_day, help="Date in YYYY-MM-DD format.")
    recent_parser = commands.add_parser("recent", help="Show recent items, newest first.")
    recent_parser.add_argument("--days", type=int, default=None)
    commands.add_parser("favourites", help="List favourites.")
    favourite_parser = commands.add_parser("favourite", help="Toggle an item's favourite flag.")
    favourite_parser.add_argument("item_id")
    viewed_parser = commands.add_parser("viewed", help="Mark an item as viewed.")
    viewed_parser.add_argument("item_id")

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = handle_args(argv)
    config = Config()
    setup_structured_logging(config.log_level)

    execution_id = new_execution_id("cli")
    main_logger = create_execution_logger("main", execution_id)
    main_logger.log_execution_start(command=args.command)

    feed_config = config.get_feed_config()
    if args.db:
        feed_config.db_path = args.db

    services = None
    try:
        services = create_services(feed_config, execution_id)
        body = run_command(args, services)
        exit_code = 0
    except FeedError as e:
        main_logger.error(f"Command failed: {e}", error=str(e))
        body = {"error": e.kind, "message": e.message}
        exit_code = 1
    except LookupError as e:
        main_logger.error(str(e), error=str(e))
        body = {"error": "not_found", "message": str(e)}
        exit_code = 1
    finally:
        if services is not None:
            services.database.close()

    main_logger.log_metrics(
        {"command": args.command, "exit_code": exit_code, "degraded": "warning" in body}
    )
    main_logger.log_execution_end(success=exit_code == 0)

    json.dump(body, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
