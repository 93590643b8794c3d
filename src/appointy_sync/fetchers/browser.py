"""Fetch pages with a Playwright-driven Chromium.

Either launches a local Chromium or connects to a remote one over CDP
(Browserless and similar services). Logs in on its own when the booking site
asks for it, so callers only ever see the signed-in page.
"""

from playwright.async_api import (
    Browser,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from src.appointy_sync.errors import ConfigurationMissing, ScrapingError, UpstreamFetchFailed
from src.appointy_sync.fetchers.base import PageFetcher
from src.appointy_sync.logging import get_logger
from src.appointy_sync.models import FetchResult
from src.appointy_sync.session import SessionManager
from src.appointy_sync.utils import configure_page_for_scraping

log = get_logger(__name__)

# Time given to the booking SPA to render after the network settles
RENDER_WAIT_MS = 2000


class BrowserFetcher(PageFetcher):
    """One browser session per fetch, with the login state persisted between them."""

    name = "browser"

    def __init__(
        self,
        session: SessionManager,
        *,
        email: str = "",
        password: str = "",
        ws_endpoint: str = "",
        executable_path: str = "",
        headless: bool = True,
        timeout_seconds: int = 60,
    ) -> None:
        self.session = session
        self.email = email
        self.password = password
        self.ws_endpoint = ws_endpoint
        self.executable_path = executable_path
        self.headless = headless
        self.timeout_ms = timeout_seconds * 1000

    async def _open_browser(self, playwright: Playwright) -> Browser:
        if self.ws_endpoint:
            log.info("browser_connecting", remote=True)
            return await playwright.chromium.connect_over_cdp(self.ws_endpoint)
        return await playwright.chromium.launch(
            headless=self.headless,
            executable_path=self.executable_path or None,
            args=["--no-sandbox", "--disable-dev-shm-usage"],
        )

    async def get(self, url: str, cookies: list[dict] | None = None) -> FetchResult:
        try:
            async with async_playwright() as playwright:
                browser = await self._open_browser(playwright)
                try:
                    context = await self.session.create_authenticated_context(browser)
                    if cookies:
                        await context.add_cookies(cookies)
                    page = await context.new_page()
                    await configure_page_for_scraping(page, timeout_ms=self.timeout_ms)

                    await page.goto(url, wait_until="networkidle", timeout=self.timeout_ms)

                    if await self.session.needs_login(page):
                        if not self.email or not self.password:
                            raise ConfigurationMissing("Appointy credentials not configured")
                        await self.session.authenticate(
                            page, self.email, self.password, timeout_ms=self.timeout_ms
                        )
                        await self.session.save_session(context)
                        if url not in page.url:
                            await page.goto(url, wait_until="networkidle", timeout=self.timeout_ms)

                    await page.wait_for_timeout(RENDER_WAIT_MS)

                    result = FetchResult(
                        url=page.url,
                        cookies=await context.cookies(),
                        html=await page.content(),
                    )
                finally:
                    await browser.close()
        except (ScrapingError, ConfigurationMissing):
            raise
        except PlaywrightTimeoutError as e:
            raise UpstreamFetchFailed(f"Browser timed out loading {url}: {e}") from e
        except Exception as e:
            log.error("browser_fetch_error", error=str(e), type=type(e).__name__)
            raise UpstreamFetchFailed(f"Browser fetch failed: {e}") from e

        log.info("browser_fetched", url=result.url, length=len(result.html))
        return result

    async def post(
        self,
        url: str,
        data: dict[str, str],
        cookies: list[dict] | None = None,
    ) -> FetchResult:
        try:
            async with async_playwright() as playwright:
                browser = await self._open_browser(playwright)
                try:
                    context = await self.session.create_authenticated_context(browser)
                    if cookies:
                        await context.add_cookies(cookies)
                    response = await context.request.post(
                        url, form=data, timeout=self.timeout_ms
                    )
                    result = FetchResult(
                        url=response.url,
                        cookies=await context.cookies(),
                        html=await response.text(),
                    )
                finally:
                    await browser.close()
        except PlaywrightTimeoutError as e:
            raise UpstreamFetchFailed(f"Browser timed out posting to {url}: {e}") from e
        except Exception as e:
            log.error("browser_post_error", error=str(e), type=type(e).__name__)
            raise UpstreamFetchFailed(f"Browser post failed: {e}") from e
        return result

    async def check(self) -> str:
        if not self.ws_endpoint:
            return "local"
        try:
            async with async_playwright() as playwright:
                browser = await playwright.chromium.connect_over_cdp(
                    self.ws_endpoint, timeout=5000
                )
                await browser.close()
        except Exception as e:
            return f"unreachable: {type(e).__name__}"
        return "connected"
