"""Unit tests for the command-line consumer."""

import json
import os
from datetime import date
from unittest.mock import Mock, patch

import requests

from curio_feed.database import Database
from curio_feed.errors import DatabaseError
from curio_feed.favourites import FavouritesService
from curio_feed.main import Services, handle_args, main, run_command
from factories import build_service, feed_dict, item_dict, ok_response


def _services(session):
    database = Database()
    feed_service, favourites, _ = build_service(session, database=database)
    return Services(database=database, feed=feed_service, favourites=favourites)


def _payload():
    return feed_dict([item_dict("items/1", "2026-01-11"), item_dict("items/2", "2026-01-12")])


class TestRunCommandUnit:
    """Unit tests for run_command dispatch."""

    def setup_method(self):
        self.session = Mock()
        self.session.get.return_value = ok_response(_payload())
        self.services = _services(self.session)

    def teardown_method(self):
        self.services.database.close()

    def test_today(self):
        body = run_command(handle_args(["today"]), self.services)

        assert body["item"]["id"] == "items/2"
        assert body["item"]["displayDateLabel"] == "Today"
        assert body["item"]["isFavourite"] is False
        assert body["item"]["locationName"] == "Ballarat, Central Highlands"
        assert "warning" not in body

    def test_date(self):
        args = handle_args(["date", "2026-01-11"])

        assert args.day == date(2026, 1, 11)
        assert run_command(args, self.services)["item"]["id"] == "items/1"

    def test_recent(self):
        body = run_command(handle_args(["recent", "--days", "2"]), self.services)

        assert [item["id"] for item in body["items"]] == ["items/2", "items/1"]

    def test_favourite_toggle_and_list(self):
        run_command(handle_args(["today"]), self.services)

        body = run_command(handle_args(["favourite", "items/1"]), self.services)
        assert body == {"itemId": "items/1", "isFavourite": True, "saved": True}

        favourites = run_command(handle_args(["favourites"]), self.services)
        assert [item["id"] for item in favourites["items"]] == ["items/1"]
        assert favourites["items"][0]["favouritedAt"] is not None

    def test_viewed(self):
        run_command(handle_args(["today"]), self.services)

        body = run_command(handle_args(["viewed", "items/2"]), self.services)

        assert body == {"itemId": "items/2", "saved": True}
        assert self.services.feed.store.get("items/2").viewed_at is not None

    def test_favourite_with_expired_cache_stays_offline(self):
        run_command(handle_args(["today"]), self.services)
        self.services.feed.clock.advance(3601)
        self.session.get.reset_mock()
        self.session.get.side_effect = requests.Timeout("slow network")

        body = run_command(handle_args(["favourite", "items/1"]), self.services)

        assert self.session.get.call_count == 0
        assert body == {"itemId": "items/1", "isFavourite": True, "saved": True}

    def test_viewed_uses_cached_feed_when_store_has_no_record(self):
        run_command(handle_args(["today"]), self.services)
        with self.services.database.transaction() as cur:
            cur.execute("DELETE FROM item")
        self.session.get.reset_mock()

        body = run_command(handle_args(["viewed", "items/1"]), self.services)

        assert self.session.get.call_count == 0
        assert body == {"itemId": "items/1", "saved": True}
        assert self.services.feed.store.get("items/1").title == "Curiosity items/1"

    def test_store_commands_carry_no_fetch_warning(self):
        run_command(handle_args(["today"]), self.services)
        self.session.get.side_effect = requests.ConnectionError("offline")
        run_command(handle_args(["--refresh", "today"]), self.services)

        body = run_command(handle_args(["favourite", "items/1"]), self.services)

        assert "warning" not in body

    def test_degraded_fetch_adds_warning(self):
        run_command(handle_args(["today"]), self.services)
        self.session.get.side_effect = requests.ConnectionError("offline")

        body = run_command(handle_args(["--refresh", "today"]), self.services)

        assert body["item"]["id"] == "items/2"
        assert body["warning"] == "Using cached content. Check your connection for updates."


class TestMainUnit:
    """Unit tests for the main entry point."""

    def _run(self, argv, session, capsys):
        services = _services(session)
        with (
            patch.dict(os.environ, {}, clear=True),
            patch("curio_feed.main.setup_structured_logging"),
            patch("curio_feed.main.create_services", return_value=services),
        ):
            exit_code = main(argv)
        return exit_code, json.loads(capsys.readouterr().out)

    def test_success_prints_json(self, capsys):
        session = Mock()
        session.get.return_value = ok_response(_payload())

        exit_code, body = self._run(["today"], session, capsys)

        assert exit_code == 0
        assert body["item"]["id"] == "items/2"

    def test_offline_without_cache_reports_network_error(self, capsys):
        session = Mock()
        session.get.side_effect = requests.ConnectionError("offline")

        exit_code, body = self._run(["today"], session, capsys)

        assert exit_code == 1
        assert body == {
            "error": "network_error",
            "message": "Unable to fetch today's curiosity. Please check your connection.",
        }

    def test_unknown_item(self, capsys):
        session = Mock()
        session.get.return_value = ok_response(_payload())

        exit_code, body = self._run(["favourite", "items/404"], session, capsys)

        assert exit_code == 1
        assert body["error"] == "not_found"

    def test_services_share_one_store(self):
        services = _services(Mock())

        assert isinstance(services.favourites, FavouritesService)
        assert services.favourites.store is services.feed.store
        services.database.close()

    def test_database_open_failure_reports_json(self, capsys):
        with (
            patch.dict(os.environ, {}, clear=True),
            patch("curio_feed.main.setup_structured_logging"),
            patch(
                "curio_feed.main.create_services",
                side_effect=DatabaseError("OperationalError opening database /nope.db"),
            ),
        ):
            exit_code = main(["--db", "/nope.db", "today"])

        body = json.loads(capsys.readouterr().out)
        assert exit_code == 1
        assert body == {"error": "database_error", "message": DatabaseError.default_message}
