"""Error taxonomy for the curio feed engine.

Every error kind carries a one-line, user-facing ``message``. The wording
belongs to the presentation layer but the set of kinds is fixed here.
"""


class FeedError(Exception):
    """Base class for all errors surfaced by the feed engine."""

    kind = "feed_error"
    default_message = "Something went wrong while loading the feed."

    def __init__(self, detail: str | None = None):
        super().__init__(detail or self.default_message)

    @property
    def message(self) -> str:
        """Human-readable message for display."""
        return self.default_message


class NetworkError(FeedError):
    """Fetching the feed failed and no cached copy was available."""

    kind = "network_error"
    default_message = "Unable to fetch today's curiosity. Please check your connection."

    def __init__(self, cause: BaseException):
        self.cause = cause
        super().__init__(f"Network fetch failed: {cause}")


class NetworkErrorWithCachedFallback(FeedError):
    """Fetching the feed failed but a cached copy was served instead.

    This is a soft failure: the operation succeeded with possibly stale data.
    """

    kind = "network_error_with_cache"
    default_message = "Using cached content. Check your connection for updates."

    def __init__(self, cause: BaseException):
        self.cause = cause
        super().__init__(f"Network fetch failed, served cached feed: {cause}")


class InvalidResponseError(FeedError):
    """The server response could not be parsed as a feed document."""

    kind = "invalid_response"
    default_message = "Received an invalid response from the server."


class HttpError(FeedError):
    """The server answered with a status other than 200."""

    kind = "http_error"

    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"Unexpected HTTP status {status_code}")

    @property
    def message(self) -> str:
        return f"Server error (code {self.status_code}). Please try again later."


class NoItemScheduledError(FeedError):
    """No item could be resolved for today."""

    kind = "no_item_scheduled"
    default_message = "No curiosity scheduled for today. Check back tomorrow!"


class DatabaseError(FeedError):
    """Exception class for errors in the local persistence layer."""

    kind = "database_error"
