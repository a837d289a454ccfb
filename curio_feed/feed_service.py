"""Feed synchronization: cache-or-refetch, reconciliation and offline fallback."""

from datetime import date, datetime
from typing import Callable

import requests

from .cache import FeedCache
from .config import FeedConfig
from .errors import (
    FeedError,
    HttpError,
    InvalidResponseError,
    NetworkError,
    NetworkErrorWithCachedFallback,
    NoItemScheduledError,
)
from .logging_config import create_execution_logger
from .models import CurioItem, FeedDocument
from .store import ItemStore


class FeedService:
    """Fetches the feed, keeps the local cache and item store in step with it.

    Build one per persistence session and hand it to every consumer.
    """

    def __init__(
        self,
        config: FeedConfig,
        cache: FeedCache,
        store: ItemStore,
        session: requests.Session | None = None,
        clock: Callable[[], datetime] = datetime.now,
        execution_id: str | None = None,
    ):
        """Initialize the service.

        Args:
            config: Feed endpoint, timeouts and cache settings
            cache: Single-slot feed cache
            store: Item store to reconcile fetched items into
            session: HTTP session (a new one is created if omitted)
            clock: Source of local wall-clock time
            execution_id: Execution ID for logging context
        """
        self.config = config
        self.cache = cache
        self.store = store
        self.clock = clock
        self.logger = create_execution_logger("feed_service", execution_id)
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": config.user_agent})

        self.is_loading = False
        self.error: FeedError | None = None

        self.logger.info(
            "FeedService initialized",
            feed_url=config.feed_url,
            timeout=config.request_timeout,
        )

    @property
    def is_degraded(self) -> bool:
        """True when the last call served cached data after a failed fetch."""
        return isinstance(self.error, NetworkErrorWithCachedFallback)

    def fetch_feed(self, force_refresh: bool = False) -> FeedDocument:
        """Return the current feed document.

        A valid cache entry is returned without touching the network unless
        ``force_refresh`` is set. Otherwise the feed is downloaded once; on
        failure any cached copy, however stale, is returned and ``error`` is
        set to a NetworkErrorWithCachedFallback.

        Raises:
            NetworkError: If the download failed and nothing is cached
        """
        self.is_loading = True
        self.error = None
        try:
            if not force_refresh:
                cached = self.cache.load()
                if cached is not None and cached.is_valid(self.clock()):
                    self.logger.debug(
                        "Serving feed from valid cache", feed_version=cached.version
                    )
                    return cached.to_feed()

            try:
                feed = self._fetch_from_network()
            except (requests.RequestException, FeedError) as e:
                return self._fall_back_to_cache(e)

            self._persist(feed)
            return feed
        finally:
            self.is_loading = False

    def fetch_todays_item(self, force_refresh: bool = False) -> CurioItem:
        """Return the item for today.

        Raises:
            NoItemScheduledError: If the feed resolves nothing for today
            NetworkError: If the feed could not be loaded at all
        """
        feed = self.fetch_feed(force_refresh)
        item = feed.item_for_date(self._today())
        if item is None:
            self.error = NoItemScheduledError()
            raise self.error
        return item

    def fetch_item_for_date(
        self, day: date, force_refresh: bool = False
    ) -> CurioItem | None:
        feed = self.fetch_feed(force_refresh)
        return feed.item_for_date(day)

    def fetch_recent_items(
        self, days: int | None = None, force_refresh: bool = False
    ) -> list[CurioItem]:
        feed = self.fetch_feed(force_refresh)
        if days is None:
            days = self.config.history_days
        return feed.recent_items(days, today=self._today())

    def _today(self) -> date:
        return self.clock().date()

    def _fetch_from_network(self) -> FeedDocument:
        """Download and parse the feed document.

        Raises:
            requests.RequestException: On transport failure
            HttpError: If the status is not 200
            InvalidResponseError: If the body is not a valid feed document
        """
        feed_url = self.config.feed_url
        self.logger.info("Downloading feed", feed_url=feed_url)

        response = self.session.get(feed_url, timeout=self.config.request_timeout)
        if response.status_code != 200:
            self.logger.error(
                f"Feed request returned status {response.status_code}",
                feed_url=feed_url,
                status_code=response.status_code,
            )
            raise HttpError(response.status_code)

        try:
            feed = FeedDocument.from_dict(response.json())
        except ValueError as e:
            self.logger.error(
                f"Feed response could not be parsed: {e}", feed_url=feed_url, error=str(e)
            )
            raise InvalidResponseError(str(e)) from e

        self.logger.log_feed_fetched(feed_url, feed.version, len(feed.items))
        return feed

    def _fall_back_to_cache(self, cause: Exception) -> FeedDocument:
        cached = self.cache.load()
        if cached is not None:
            self.error = NetworkErrorWithCachedFallback(cause)
            self.logger.warning(
                f"Feed fetch failed, serving cached feed: {cause}",
                feed_url=self.config.feed_url,
                feed_version=cached.version,
                cache_valid=cached.is_valid(self.clock()),
                error=str(cause),
            )
            return cached.to_feed()

        self.error = NetworkError(cause)
        self.logger.error(
            f"Feed fetch failed and no cache is available: {cause}",
            feed_url=self.config.feed_url,
            error=str(cause),
        )
        raise self.error from cause

    def _persist(self, feed: FeedDocument) -> None:
        """Best-effort cache replacement and store reconciliation."""
        result = self.cache.replace(feed, self.clock())
        if not result.ok:
            self.logger.warning(
                f"Feed cache not updated: {result.error}", feed_version=feed.version
            )

        result = self.store.reconcile(feed.items)
        if not result.ok:
            self.logger.warning(
                f"Item store not reconciled: {result.error}", feed_version=feed.version
            )
