"""Fetch pages through a FlareSolverr proxy.

FlareSolverr runs a real browser to get past the booking site's bot
protection and returns the rendered HTML plus cookies. Requests are blocking,
so they run in a worker thread.
"""

import asyncio
from urllib.parse import urlencode

import requests

from src.appointy_sync.errors import UpstreamFetchFailed
from src.appointy_sync.fetchers.base import PageFetcher
from src.appointy_sync.logging import get_logger
from src.appointy_sync.models import FetchResult

log = get_logger(__name__)

# FlareSolverr can be slow to answer on top of its own maxTimeout
_HTTP_GRACE_SECONDS = 10


class FlareSolverrFetcher(PageFetcher):
    """Client for the FlareSolverr ``/v1`` command endpoint."""

    name = "flaresolverr"

    def __init__(self, base_url: str, timeout_seconds: int = 60) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/v1"

    async def get(self, url: str, cookies: list[dict] | None = None) -> FetchResult:
        payload = {"cmd": "request.get", "url": url}
        if cookies:
            payload["cookies"] = cookies
        return await asyncio.to_thread(self._send, payload)

    async def post(
        self,
        url: str,
        data: dict[str, str],
        cookies: list[dict] | None = None,
    ) -> FetchResult:
        payload = {"cmd": "request.post", "url": url, "postData": urlencode(data)}
        if cookies:
            payload["cookies"] = cookies
        return await asyncio.to_thread(self._send, payload)

    def _send(self, payload: dict) -> FetchResult:
        payload = {**payload, "maxTimeout": self.timeout_seconds * 1000}
        log.info("flaresolverr_request", cmd=payload["cmd"], url=payload["url"])

        try:
            resp = requests.post(
                self.endpoint,
                json=payload,
                timeout=self.timeout_seconds + _HTTP_GRACE_SECONDS,
            )
            resp.raise_for_status()
            body = resp.json()
        except requests.Timeout as e:
            raise UpstreamFetchFailed(f"FlareSolverr timed out: {e}") from e
        except (requests.RequestException, ValueError) as e:
            raise UpstreamFetchFailed(f"FlareSolverr request failed: {e}") from e

        if not isinstance(body, dict):
            raise UpstreamFetchFailed(f"FlareSolverr returned {type(body).__name__}, not an object")
        if body.get("status") != "ok":
            raise UpstreamFetchFailed(f"FlareSolverr error: {body.get('message')}")

        solution = body.get("solution")
        if not isinstance(solution, dict):
            raise UpstreamFetchFailed("FlareSolverr response has no solution")
        result = FetchResult(
            url=solution.get("url") or payload["url"],
            cookies=solution.get("cookies") or [],
            html=solution.get("response") or "",
        )
        log.info("flaresolverr_response", url=result.url, length=len(result.html))
        return result

    async def check(self) -> str:
        return await asyncio.to_thread(self._check)

    def _check(self) -> str:
        try:
            resp = requests.post(self.endpoint, json={"cmd": "sessions.list"}, timeout=5)
            body = resp.json()
        except (requests.RequestException, ValueError) as e:
            return f"unreachable: {type(e).__name__}"
        if isinstance(body, dict) and body.get("status") == "ok":
            return "connected"
        return "error"
