"""Error hierarchy for the booking feed.

Scraping failures are split into transient (network timeouts, proxy errors,
slow pages) and permanent (bad credentials, unexpected page structure) so the
browser login can retry the former with tenacity:

    @retry(retry=retry_if_exception_type(TransientError), stop=stop_after_attempt(2))
    async def authenticate(page, email, password):
        ...

Everything below ``ScrapingError`` is recoverable by the freshness gate, which
serves the last good calendar instead of failing the request.
"""


class FeedError(Exception):
    """Base exception for all feed errors."""

    pass


class ConfigurationMissing(FeedError):
    """A required secret or URL is absent from the configuration.

    Reported to callers as "not configured", never as an auth failure.
    """

    pass


class AccessDenied(FeedError):
    """Calendar token mismatch. Carries no detail about why."""

    pass


class UnresolvedDate(FeedError, ValueError):
    """A matched date or time could not be turned into a timestamp.

    The builder drops the single candidate; the batch continues.
    """

    pass


class ScrapingError(FeedError):
    """Base exception for failures while fetching the bookings page."""

    pass


class TransientError(ScrapingError):
    """Temporary failure that may succeed on retry.

    Examples: network timeouts, 503 Service Unavailable, page still rendering.
    """

    pass


class UpstreamFetchFailed(TransientError):
    """The page fetcher errored or timed out."""

    pass


class RateLimitError(TransientError):
    """Upstream throttled the request - needs longer backoff."""

    pass


class PermanentError(ScrapingError):
    """Failure that won't succeed on retry.

    Examples: login form not found, page layout changed.
    """

    pass


class AuthenticationError(PermanentError):
    """Login rejected - credentials need fixing, retry won't help."""

    pass
