"""FeedService - the calendar pipeline behind the HTTP endpoints.

    token check -> freshness gate -> fetch -> extract -> build -> encode -> cache

The service owns the cache and is handed its collaborators (config provider,
fetcher factory), so tests can swap any of them.
"""

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from src.appointy_sync.access import verify_token
from src.appointy_sync.builder import build_appointments
from src.appointy_sync.cache import CacheStatus, FeedCache, FreshnessGate
from src.appointy_sync.config import (
    ConfigProvider,
    FeedConfig,
    ServiceSettings,
    UpstashConfigProvider,
)
from src.appointy_sync.errors import ConfigurationMissing
from src.appointy_sync.extractor import extract_matches
from src.appointy_sync.fetchers import BrowserFetcher, FlareSolverrFetcher, PageFetcher
from src.appointy_sync.ics import encode_calendar
from src.appointy_sync.logging import get_logger
from src.appointy_sync.models import Appointment
from src.appointy_sync.scraper import AppointyScraper
from src.appointy_sync.session import SessionManager

log = get_logger(__name__)

FetcherFactory = Callable[[FeedConfig], PageFetcher]


def default_fetcher_factory(settings: ServiceSettings) -> FetcherFactory:
    """Build fetchers the way settings.fetch_method asks for."""

    def factory(config: FeedConfig) -> PageFetcher:
        if settings.fetch_method == "browser":
            return BrowserFetcher(
                SessionManager(settings.state_dir, settings.max_session_age_hours),
                email=config.appointy_email,
                password=config.appointy_password,
                ws_endpoint=config.browser_ws_endpoint,
                executable_path=settings.chromium_executable_path,
                headless=settings.headless,
                timeout_seconds=settings.fetch_timeout_seconds,
            )
        if not config.flaresolverr_url:
            raise ConfigurationMissing("FlareSolverr URL not configured")
        return FlareSolverrFetcher(
            config.flaresolverr_url, timeout_seconds=settings.fetch_timeout_seconds
        )

    return factory


class FeedService:
    """Generates, caches and guards the calendar feed."""

    def __init__(
        self,
        settings: ServiceSettings,
        config_provider: ConfigProvider,
        fetcher_factory: FetcherFactory | None = None,
        cache: FeedCache | None = None,
    ) -> None:
        self.settings = settings
        self.config_provider = config_provider
        self.fetcher_factory = fetcher_factory or default_fetcher_factory(settings)
        self.cache = cache or FeedCache()
        self.gate = FreshnessGate(self.cache)
        self.tz = ZoneInfo(settings.timezone)

    async def scrape(self, config: FeedConfig) -> list[Appointment]:
        """Fetch the bookings page and turn it into appointments."""
        fetcher = self.fetcher_factory(config)
        html = await AppointyScraper(fetcher, config).fetch_bookings_page()
        matches = extract_matches(html)
        appointments = build_appointments(
            matches,
            default_title=self.settings.default_title,
            location=self.settings.default_location,
            tz=self.tz,
        )
        log.info(
            "appointments_built",
            matches=len(matches),
            appointments=len(appointments),
        )
        return appointments

    async def generate(self, config: FeedConfig) -> str:
        """Scrape and encode a fresh calendar document.

        Zero appointments is a valid, empty calendar.
        """
        appointments = await self.scrape(config)
        document = encode_calendar(
            appointments,
            name=config.calendar_name,
            timezone_name=self.settings.timezone,
        )
        log.info("feed_generated", events=len(appointments), bytes=len(document))
        return document

    async def calendar(self, token: str | None, refresh: bool = False) -> tuple[str, CacheStatus]:
        """The feed as served to a calendar client.

        Raises:
            ConfigurationMissing: No token configured, or generation needs
                missing settings and nothing is cached.
            AccessDenied: Wrong token.
            ScrapingError: Generation failed and nothing is cached.
        """
        config = await asyncio.to_thread(self.config_provider.require)
        verify_token(token, config.calendar_token)

        document, status = await self.gate.serve(
            lambda: self.generate(config), force_refresh=refresh
        )
        log.info("feed_served", cache=status.value, refresh=refresh)
        return document, status

    async def health(self) -> dict:
        """Configuration completeness and fetcher reachability; no secrets."""
        config = await asyncio.to_thread(self.config_provider.load)

        fetcher_status = "not configured"
        if config is not None:
            try:
                fetcher_status = await self.fetcher_factory(config).check()
            except ConfigurationMissing:
                fetcher_status = "not configured"

        report = {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "method": self.settings.fetch_method,
            "fetcher": fetcher_status,
            "config_source": self.config_provider.name,
            "cache": self.cache.state().value,
            "configured": (config or FeedConfig()).completeness(),
        }
        if isinstance(self.config_provider, UpstashConfigProvider):
            report["config_store"] = await asyncio.to_thread(self.config_provider.ping)
        return report
