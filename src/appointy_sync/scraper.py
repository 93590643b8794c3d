"""AppointyScraper - gets the signed-in "my bookings" page through a fetcher.

Flow (FlareSolverr has no browser session of its own, so the login form is
submitted by hand):

  1. GET the booking URL.
  2. Landed on a login page?  Read the form action and hidden inputs, POST
     them back with the email and password.
  3. Not on the bookings page yet?  GET the booking URL again with the
     cookies collected so far.

The browser fetcher logs in by itself, so with it step 2 never triggers.
"""

from urllib.parse import urljoin

from bs4 import BeautifulSoup

from src.appointy_sync.config import FeedConfig
from src.appointy_sync.fetchers.base import PageFetcher
from src.appointy_sync.logging import get_logger
from src.appointy_sync.models import FetchResult

log = get_logger(__name__)

BOOKINGS_PATH_MARKER = "my-bookings"
_LOGIN_URL_MARKERS = ("login", "sign-in", "signin")


def is_login_page(result: FetchResult) -> bool:
    url = result.url.lower()
    if any(marker in url for marker in _LOGIN_URL_MARKERS):
        return True
    return 'type="password"' in result.html or "type='password'" in result.html


def login_form(result: FetchResult) -> tuple[str, dict[str, str]]:
    """Form action (absolute) and hidden field values of the login page."""
    soup = BeautifulSoup(result.html, "html.parser")
    form = soup.find("form")

    action = result.url
    if form is not None and form.get("action"):
        action = urljoin(result.url, form["action"])

    hidden: dict[str, str] = {}
    scope = form if form is not None else soup
    for field in scope.find_all("input", attrs={"type": "hidden"}):
        name = field.get("name")
        if name:
            hidden[name] = field.get("value", "")

    return action, hidden


class AppointyScraper:
    """Fetches the raw bookings page for one configured account."""

    def __init__(self, fetcher: PageFetcher, config: FeedConfig) -> None:
        self.fetcher = fetcher
        self.config = config

    async def fetch_bookings_page(self) -> str:
        """Return the bookings page HTML.

        Raises:
            ConfigurationMissing: If the Appointy login is not configured.
            UpstreamFetchFailed: If any fetch step fails.
        """
        self.config.require_credentials()
        booking_url = self.config.appointy_booking_url

        log.info("bookings_fetch_started", url=booking_url, fetcher=self.fetcher.name)
        result = await self.fetcher.get(booking_url)

        if is_login_page(result):
            log.info("login_required", url=result.url)
            result = await self._login(result)

        if BOOKINGS_PATH_MARKER not in result.url:
            log.info("navigating_to_bookings", current_url=result.url)
            result = await self.fetcher.get(booking_url, cookies=result.cookies)

        log.info("bookings_fetched", url=result.url, length=len(result.html))
        return result.html

    async def _login(self, page: FetchResult) -> FetchResult:
        action, fields = login_form(page)
        fields.update(
            {
                "email": self.config.appointy_email,
                "password": self.config.appointy_password,
                # Some Appointy forms name the field "username"
                "username": self.config.appointy_email,
            }
        )
        result = await self.fetcher.post(action, fields, cookies=page.cookies)
        log.info("login_submitted", action=action, landed_on=result.url)
        return result
