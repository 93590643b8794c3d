"""In-memory calendar cache and the freshness policy around it.

One slot holds the last good calendar and when it was generated. The gate
decides per request whether to serve it, regenerate, or fall back to it when
regeneration fails:

    EMPTY  -> generate; failure is reported (nothing to fall back to)
    FRESH  -> serve cached (HIT), unless a refresh is forced
    STALE  -> generate (MISS); on failure serve cached (STALE)

The lock only guards the slot itself. Two concurrent misses may both scrape;
the last writer wins, which is harmless because the UIDs are content hashes.
"""

import threading
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

from src.appointy_sync.errors import ConfigurationMissing, ScrapingError
from src.appointy_sync.logging import get_logger

log = get_logger(__name__)

CACHE_TTL = timedelta(minutes=15)


class CacheState(str, Enum):
    EMPTY = "EMPTY"
    FRESH = "FRESH"
    STALE = "STALE"


class CacheStatus(str, Enum):
    """Value of the X-Cache response header."""

    HIT = "HIT"
    MISS = "MISS"
    STALE = "STALE"


@dataclass(frozen=True)
class CacheEntry:
    document: str
    generated_at: datetime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FeedCache:
    """Single-slot cache for the generated calendar."""

    def __init__(
        self,
        ttl: timedelta = CACHE_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.ttl = ttl
        self.clock = clock
        self._entry: CacheEntry | None = None
        self._lock = threading.Lock()

    def get(self) -> CacheEntry | None:
        with self._lock:
            return self._entry

    def store(self, document: str) -> CacheEntry:
        entry = CacheEntry(document=document, generated_at=self.clock())
        with self._lock:
            self._entry = entry
        return entry

    def clear(self) -> None:
        with self._lock:
            self._entry = None

    def is_fresh(self, entry: CacheEntry) -> bool:
        return self.clock() - entry.generated_at < self.ttl

    def state(self) -> CacheState:
        entry = self.get()
        if entry is None:
            return CacheState.EMPTY
        if self.is_fresh(entry):
            return CacheState.FRESH
        return CacheState.STALE


def is_force_refresh(value: str | None) -> bool:
    """Only the literal string "true" forces a refresh."""
    return value == "true"


class FreshnessGate:
    """Serve from cache, regenerate, or fall back to stale data."""

    def __init__(self, cache: FeedCache) -> None:
        self.cache = cache

    async def serve(
        self,
        generate: Callable[[], Awaitable[str]],
        *,
        force_refresh: bool = False,
    ) -> tuple[str, CacheStatus]:
        """Return the calendar document and how it was obtained.

        Any failure in generate() falls back to the cached document, even a
        stale one. Unexpected errors are logged with their traceback.

        Args:
            generate: Coroutine function producing a fresh document.
            force_refresh: Regenerate even when the cache is fresh.

        Raises:
            Exception: Whatever generate() raised, when there is no cached
                document to fall back to.
        """
        entry = self.cache.get()
        if not force_refresh and entry is not None and self.cache.is_fresh(entry):
            log.debug("cache_hit", generated_at=entry.generated_at.isoformat())
            return entry.document, CacheStatus.HIT

        try:
            document = await generate()
        except Exception as e:
            unexpected = not isinstance(e, (ScrapingError, ConfigurationMissing))
            fallback = self.cache.get()
            if fallback is None:
                log.error(
                    "feed_generation_failed",
                    error=str(e),
                    type=type(e).__name__,
                    exc_info=unexpected,
                )
                raise
            log.warning(
                "cache_stale_fallback",
                error=str(e),
                type=type(e).__name__,
                exc_info=unexpected,
                generated_at=fallback.generated_at.isoformat(),
            )
            return fallback.document, CacheStatus.STALE

        self.cache.store(document)
        return document, CacheStatus.MISS
