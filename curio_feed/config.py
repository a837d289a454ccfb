"""Configuration management for the curio feed engine."""

import os
from dataclasses import dataclass


@dataclass
class FeedConfig:
    """Configuration for fetching and caching the feed."""

    feed_url: str
    db_path: str = "curio_feed.db"
    cache_validity_seconds: float = 3600.0
    history_days: int = 14
    request_timeout: float = 30.0
    user_agent: str = "Curio-Feed/1.0 (Curiosity of the day client)"


class Config:
    """Main configuration manager."""

    DEFAULT_FEED_URL = "https://davidcaddy.github.io/VicCurio/approved.json"
    DEFAULT_DB_PATH = "curio_feed.db"

    def __init__(self):
        """Initialize configuration from environment variables."""
        self.feed_url = os.getenv("CURIO_FEED_URL", "").strip() or self.DEFAULT_FEED_URL
        self.db_path = os.getenv("CURIO_DB_PATH", "").strip() or self.DEFAULT_DB_PATH
        self.cache_validity_seconds = self._get_number(
            "CURIO_CACHE_VALIDITY_SECONDS", 3600.0, float
        )
        self.history_days = self._get_number("CURIO_HISTORY_DAYS", 14, int)
        self.request_timeout = self._get_number("CURIO_REQUEST_TIMEOUT", 30.0, float)
        self.log_level = os.getenv("LOG_LEVEL", "INFO")

    @staticmethod
    def _get_number(name: str, default, cast):
        raw = os.getenv(name, "").strip()
        if not raw:
            return default
        try:
            value = cast(raw)
        except ValueError as e:
            raise ValueError(f"Invalid value for {name}: {raw!r}") from e
        if value <= 0:
            raise ValueError(f"{name} must be positive, got {raw!r}")
        return value

    def get_feed_config(self) -> FeedConfig:
        """Get feed configuration."""
        return FeedConfig(
            feed_url=self.feed_url,
            db_path=self.db_path,
            cache_validity_seconds=self.cache_validity_seconds,
            history_days=self.history_days,
            request_timeout=self.request_timeout,
        )
