"""Page fetcher interface.

A fetcher turns a URL (plus cookies from an earlier step) into the final URL,
the response cookies and the raw HTML. Anything that goes wrong is raised as
UpstreamFetchFailed so the freshness gate can fall back to cached data.
"""

from abc import ABC, abstractmethod

from src.appointy_sync.models import FetchResult


class PageFetcher(ABC):
    name: str = "fetcher"

    @abstractmethod
    async def get(self, url: str, cookies: list[dict] | None = None) -> FetchResult:
        """Load a page."""

    @abstractmethod
    async def post(
        self,
        url: str,
        data: dict[str, str],
        cookies: list[dict] | None = None,
    ) -> FetchResult:
        """Submit a url-encoded form."""

    @abstractmethod
    async def check(self) -> str:
        """Short reachability status for the health endpoint."""
