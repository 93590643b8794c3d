"""Shared fixtures: fake collaborators and sample booking pages."""

from datetime import datetime, timedelta, timezone

import pytest

from src.appointy_sync.cache import FeedCache
from src.appointy_sync.config import ConfigProvider, FeedConfig, ServiceSettings
from src.appointy_sync.errors import UpstreamFetchFailed
from src.appointy_sync.fetchers.base import PageFetcher
from src.appointy_sync.models import FetchResult
from src.appointy_sync.service import FeedService

BOOKING_URL = "https://mathnasium-booking.appointy.com/portlandme/my-bookings"
TOKEN = "s3cret-calendar-token"

CARD_PAGE = """
<html><body>
  <h1>My Bookings</h1>
  <div class="bookings-list">
    <div class="booking-card">
      <h3>Algebra Review</h3>
      <p>Thursday, January 15, 2026</p>
      <p>4:00 PM - 5:00 PM</p>
    </div>
    <div class="booking-card">
      <h3>Geometry</h3>
      <p>Friday, January 16, 2026</p>
      <p>3:30 PM</p>
    </div>
  </div>
</body></html>
"""

COMPACT_PAGE = """
<html><body><div id="root">
  <div><span>Thu | Jan 08, 26</span><span>Scheduled</span><span>4:00pm</span></div>
  <div><span>Mon | Jan 12, 26</span><span>Scheduled</span><span>5:30pm</span></div>
</div></body></html>
"""


class FakeClock:
    """Manually advanced clock for cache tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeFetcher(PageFetcher):
    """Serves canned pages and records every call."""

    name = "fake"

    def __init__(self, pages: dict[str, FetchResult] | None = None, html: str = "") -> None:
        self.pages = pages or {}
        self.html = html
        self.fail = False
        self.gets: list[tuple[str, list[dict] | None]] = []
        self.posts: list[tuple[str, dict[str, str], list[dict] | None]] = []
        self.post_result: FetchResult | None = None

    async def get(self, url, cookies=None):
        self.gets.append((url, cookies))
        if self.fail:
            raise UpstreamFetchFailed("FlareSolverr timed out")
        if url in self.pages:
            return self.pages[url]
        return FetchResult(url=url, html=self.html)

    async def post(self, url, data, cookies=None):
        self.posts.append((url, data, cookies))
        return self.post_result or FetchResult(url=url)

    async def check(self):
        return "connected"


class MemoryConfigProvider(ConfigProvider):
    name = "memory"

    def __init__(self, config: FeedConfig | None) -> None:
        self.config = config

    def load(self):
        return self.config

    def save(self, config):
        self.config = config


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> ServiceSettings:
    return ServiceSettings(
        _env_file=None,
        fetch_method="flaresolverr",
        timezone="America/New_York",
        default_title="Mathnasium Session",
        default_location="Mathnasium of Portland",
        calendar_token="",
        appointy_email="",
        upstash_redis_rest_url="",
        upstash_redis_rest_token="",
    )


@pytest.fixture
def feed_config() -> FeedConfig:
    return FeedConfig(
        appointy_email="parent@example.com",
        appointy_password="hunter2",
        appointy_booking_url=BOOKING_URL,
        calendar_token=TOKEN,
        calendar_name="Mathnasium Appointments",
        flaresolverr_url="http://flaresolverr:8191",
    )


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher(html=CARD_PAGE)


@pytest.fixture
def service(settings, feed_config, fetcher, clock) -> FeedService:
    return FeedService(
        settings,
        MemoryConfigProvider(feed_config),
        fetcher_factory=lambda config: fetcher,
        cache=FeedCache(clock=clock),
    )
