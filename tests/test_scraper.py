"""Tests for the login flow that reaches the bookings page."""

import pytest

from src.appointy_sync.config import FeedConfig
from src.appointy_sync.errors import ConfigurationMissing, UpstreamFetchFailed
from src.appointy_sync.models import FetchResult
from src.appointy_sync.scraper import AppointyScraper, is_login_page, login_form
from tests.conftest import BOOKING_URL, CARD_PAGE, FakeFetcher

LOGIN_URL = "https://mathnasium-booking.appointy.com/portlandme/login"

LOGIN_PAGE = """
<html><body>
  <form action="/portlandme/session" method="post">
    <input type="hidden" name="csrf" value="abc123">
    <input type="hidden" name="returnUrl" value="/portlandme/my-bookings">
    <input type="email" name="email">
    <input type="password" name="password">
    <button type="submit">Sign In</button>
  </form>
</body></html>
"""


class TestLoginDetection:
    def test_login_url(self):
        assert is_login_page(FetchResult(url=LOGIN_URL))

    def test_password_field(self):
        html = '<form><input type="password" name="pw"></form>'
        assert is_login_page(FetchResult(url="https://example.com/portal", html=html))

    def test_bookings_page(self):
        assert not is_login_page(FetchResult(url=BOOKING_URL, html=CARD_PAGE))

    def test_login_form_fields(self):
        action, fields = login_form(FetchResult(url=LOGIN_URL, html=LOGIN_PAGE))

        assert action == "https://mathnasium-booking.appointy.com/portlandme/session"
        assert fields == {"csrf": "abc123", "returnUrl": "/portlandme/my-bookings"}

    def test_form_without_action_posts_to_page(self):
        action, fields = login_form(FetchResult(url=LOGIN_URL, html="<form></form>"))
        assert action == LOGIN_URL
        assert fields == {}


class TestAppointyScraper:
    async def test_already_signed_in(self, feed_config):
        fetcher = FakeFetcher(pages={BOOKING_URL: FetchResult(url=BOOKING_URL, html=CARD_PAGE)})

        html = await AppointyScraper(fetcher, feed_config).fetch_bookings_page()

        assert html == CARD_PAGE
        assert fetcher.gets == [(BOOKING_URL, None)]
        assert fetcher.posts == []

    async def test_login_then_bookings(self, feed_config):
        cookies = [{"name": "sid", "value": "1"}]
        fetcher = FakeFetcher(
            pages={BOOKING_URL: FetchResult(url=LOGIN_URL, html=LOGIN_PAGE, cookies=cookies)}
        )
        fetcher.post_result = FetchResult(
            url="https://mathnasium-booking.appointy.com/portlandme/home",
            cookies=cookies + [{"name": "auth", "value": "2"}],
        )

        await AppointyScraper(fetcher, feed_config).fetch_bookings_page()

        [(action, data, post_cookies)] = fetcher.posts
        assert action.endswith("/portlandme/session")
        assert data["csrf"] == "abc123"
        assert data["email"] == "parent@example.com"
        assert data["username"] == "parent@example.com"
        assert data["password"] == "hunter2"
        assert post_cookies == cookies

        # Second GET carries the cookies from the login response
        assert fetcher.gets[-1] == (BOOKING_URL, fetcher.post_result.cookies)

    async def test_login_redirects_to_bookings(self, feed_config):
        fetcher = FakeFetcher(pages={BOOKING_URL: FetchResult(url=LOGIN_URL, html=LOGIN_PAGE)})
        fetcher.post_result = FetchResult(url=BOOKING_URL, html=CARD_PAGE)

        html = await AppointyScraper(fetcher, feed_config).fetch_bookings_page()

        assert html == CARD_PAGE
        assert len(fetcher.gets) == 1

    async def test_missing_credentials(self):
        fetcher = FakeFetcher()

        with pytest.raises(ConfigurationMissing):
            await AppointyScraper(fetcher, FeedConfig(calendar_token="t")).fetch_bookings_page()
        assert fetcher.gets == []

    async def test_fetch_failure_propagates(self, feed_config):
        fetcher = FakeFetcher()
        fetcher.fail = True

        with pytest.raises(UpstreamFetchFailed):
            await AppointyScraper(fetcher, feed_config).fetch_bookings_page()
