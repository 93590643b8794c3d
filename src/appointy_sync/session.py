"""Playwright session management for Appointy authentication.

SessionManager handles storage state persistence, login detection and the
login form itself. Reusing a saved session avoids logging in on every scrape,
which keeps the account clear of the site's bot checks.
"""

from datetime import datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from src.appointy_sync.errors import AuthenticationError, PermanentError, TransientError
from src.appointy_sync.logging import get_logger

if TYPE_CHECKING:
    from playwright.async_api import Browser, BrowserContext, ElementHandle, Page

logger = get_logger(__name__)

# Appointy has shipped several login layouts; try each selector in order
EMAIL_SELECTORS = (
    'input[type="email"]',
    'input[name="email"]',
    'input[placeholder*="email" i]',
    "#email",
    '[data-testid="email-input"]',
)
PASSWORD_SELECTORS = (
    'input[type="password"]',
    'input[name="password"]',
    "#password",
)
SUBMIT_SELECTORS = (
    'button[type="submit"]',
    'input[type="submit"]',
    'button:has-text("Sign In")',
    'button:has-text("Log In")',
    'button:has-text("Continue")',
)
SIGN_IN_LINKS = (
    "text=Sign In",
    "text=Log In",
    '[class*="login"]',
    '[class*="signin"]',
)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


async def _first_match(page: "Page", selectors: tuple[str, ...]) -> "ElementHandle | None":
    for selector in selectors:
        element = await page.query_selector(selector)
        if element:
            return element
    return None


class SessionManager:
    """Manages Playwright authentication state persistence and validation.

    Saves browser storage state (cookies, localStorage) to disk after a
    successful login and restores it on later scrapes.
    """

    def __init__(
        self, state_dir: str = "data/state", max_session_age_hours: int = 24
    ) -> None:
        """Initialize SessionManager.

        Args:
            state_dir: Directory to store session state files.
            max_session_age_hours: Maximum age of session before considering expired.
        """
        self.state_dir = Path(state_dir)
        self.state_file = self.state_dir / "appointy_session.json"
        self.max_session_age_hours = max_session_age_hours

        self.state_dir.mkdir(parents=True, exist_ok=True)

        logger.info(
            "session_manager_initialized",
            state_file=str(self.state_file),
            max_age_hours=max_session_age_hours,
        )

    def is_session_valid(self) -> bool:
        """Check if a saved session exists and is still fresh.

        Returns:
            True if session file exists and is younger than max_session_age_hours.
        """
        if not self.state_file.exists():
            logger.debug("session_check", result="missing", reason="file_not_found")
            return False

        file_mtime = datetime.fromtimestamp(self.state_file.stat().st_mtime)
        age = datetime.now() - file_mtime
        max_age = timedelta(hours=self.max_session_age_hours)

        if age > max_age:
            logger.info(
                "session_check",
                result="expired",
                age_hours=age.total_seconds() / 3600,
                max_hours=self.max_session_age_hours,
            )
            return False

        logger.debug(
            "session_check",
            result="valid",
            age_hours=age.total_seconds() / 3600,
        )
        return True

    async def save_session(self, context: "BrowserContext") -> None:
        """Save browser context storage state to disk."""
        await context.storage_state(path=str(self.state_file))
        logger.info("session_saved", path=str(self.state_file))

    async def create_authenticated_context(
        self, browser: "Browser"
    ) -> "BrowserContext":
        """Create browser context, restoring session if valid."""
        if self.is_session_valid():
            context = await browser.new_context(
                storage_state=str(self.state_file), user_agent=USER_AGENT
            )
            logger.info(
                "context_created", type="restored", state_file=str(self.state_file)
            )
        else:
            context = await browser.new_context(user_agent=USER_AGENT)
            logger.info("context_created", type="fresh", reason="no_valid_session")

        return context

    async def needs_login(self, page: "Page") -> bool:
        """Check if the current page is asking us to sign in.

        A visible password field, or a login/sign-in URL, means the saved
        session (if any) was not accepted.
        """
        url = page.url.lower()
        if "login" in url or "sign-in" in url or "signin" in url:
            logger.debug("auth_check", result="not_authenticated", reason="login_url")
            return True

        password = await page.query_selector('input[type="password"]')
        if password and await password.is_visible():
            logger.debug("auth_check", result="not_authenticated", reason="password_field")
            return True

        logger.debug("auth_check", result="authenticated")
        return False

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_fixed(5),
        retry=retry_if_exception_type(TransientError),
        reraise=True,
    )
    async def authenticate(
        self, page: "Page", email: str, password: str, timeout_ms: int = 30000
    ) -> None:
        """Sign in on the current page and verify success.

        Handles single-page forms and two-step (email, then password) flows.
        Retries on TransientError but fails fast on AuthenticationError.

        Raises:
            AuthenticationError: If the login is rejected.
            PermanentError: If no login form can be found.
            TransientError: If network/temporary issues prevent login.
        """
        logger.info("authentication_started", url=page.url)

        try:
            email_input = await _first_match(page, EMAIL_SELECTORS)
            if email_input is None:
                # Some layouts hide the form behind a "Sign In" button
                sign_in = await _first_match(page, SIGN_IN_LINKS)
                if sign_in is not None:
                    await sign_in.click()
                    await page.wait_for_timeout(1000)
                    email_input = await _first_match(page, EMAIL_SELECTORS)

            if email_input is None:
                raise PermanentError(
                    "Could not find email input field. The page structure may have changed."
                )

            await email_input.type(email, delay=50)

            password_input = await _first_match(page, PASSWORD_SELECTORS)
            if password_input is not None:
                await password_input.type(password, delay=50)

            await self._submit(page, timeout_ms)

            # Two-step login: password field appears after the email step
            if password_input is None:
                password_input = await _first_match(page, PASSWORD_SELECTORS)
                if password_input is not None:
                    await password_input.type(password, delay=50)
                    await self._submit(page, timeout_ms)

            if await self.needs_login(page):
                logger.error("authentication_failed", reason="still_on_login")
                raise AuthenticationError(
                    "Login appears to have failed. Check your credentials."
                )

            logger.info("authentication_succeeded")

        except PlaywrightTimeoutError as e:
            logger.warning("authentication_timeout", error=str(e))
            raise TransientError(f"Authentication timed out: {e}") from e
        except PermanentError:
            # Re-raise without retry - wrong credentials won't fix on retry
            raise
        except Exception as e:
            logger.error("authentication_error", error=str(e), type=type(e).__name__)
            raise TransientError(f"Authentication failed: {e}") from e

    async def _submit(self, page: "Page", timeout_ms: int) -> None:
        submit = await _first_match(page, SUBMIT_SELECTORS)
        if submit is not None:
            await submit.click()
        try:
            await page.wait_for_load_state("networkidle", timeout=timeout_ms)
        except PlaywrightTimeoutError:
            # SPAs keep polling; a busy network after submit is not a failure
            logger.debug("submit_networkidle_timeout")
        await page.wait_for_timeout(2000)

    def clear_session(self) -> None:
        """Delete saved session state file."""
        if self.state_file.exists():
            self.state_file.unlink()
            logger.info("session_cleared", path=str(self.state_file))
        else:
            logger.debug("session_clear_skipped", reason="file_not_found")
