"""Page fetchers: where the bookings page HTML comes from."""

from src.appointy_sync.fetchers.base import PageFetcher
from src.appointy_sync.fetchers.browser import BrowserFetcher
from src.appointy_sync.fetchers.flaresolverr import FlareSolverrFetcher

__all__ = [
    "BrowserFetcher",
    "FlareSolverrFetcher",
    "PageFetcher",
]
