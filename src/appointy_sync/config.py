"""Service settings and the feed configuration record.

Two layers:

  ServiceSettings  process settings from environment variables / .env
  FeedConfig       the persisted record (credentials, booking URL, token),
                   loaded through a ConfigProvider

The core only ever sees a FeedConfig passed in by the service; it never reads
the environment or the store itself.
"""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Literal

import requests
from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings

from src.appointy_sync.errors import ConfigurationMissing
from src.appointy_sync.logging import get_logger

log = get_logger(__name__)

DEFAULT_BOOKING_URL = "https://mathnasium-booking.appointy.com/portlandme/my-bookings"
DEFAULT_CALENDAR_NAME = "Mathnasium Appointments"
UPSTASH_CONFIG_KEY = "appointy:config"


class ServiceSettings(BaseSettings):
    """Service configuration loaded from environment variables.

    Settings are loaded from environment variables with sensible defaults.
    For local development, create a .env file in the project root.
    """

    # Appointy account (env fallback for the persisted record)
    appointy_email: str = Field(default="", description="Appointy login email")
    appointy_password: str = Field(default="", description="Appointy login password")
    appointy_booking_url: str = Field(
        default=DEFAULT_BOOKING_URL,
        description="Appointy 'my bookings' page URL",
    )
    calendar_token: str = Field(
        default="",
        description="Secret token required to read the calendar feed",
    )
    calendar_name: str = Field(
        default=DEFAULT_CALENDAR_NAME,
        description="Display name of the published calendar",
    )

    # Page fetching
    fetch_method: Literal["flaresolverr", "browser"] = Field(
        default="flaresolverr",
        description="How the bookings page is fetched",
    )
    flaresolverr_url: str = Field(
        default="",
        description="FlareSolverr base URL, e.g. http://localhost:8191",
    )
    browser_ws_endpoint: str = Field(
        default="",
        description="Remote Chromium CDP endpoint (e.g. Browserless); local launch if empty",
    )
    chromium_executable_path: str = Field(
        default="",
        description="Chromium binary for local launch; Playwright's bundled one if empty",
    )
    headless: bool = Field(default=True, description="Run the local browser headless")
    fetch_timeout_seconds: int = Field(
        default=60,
        description="Upper bound for one upstream page fetch",
    )

    # Paths
    data_dir: str = Field(default="data", description="Directory for persisted state")
    config_file: str = Field(
        default="",
        description="Feed config JSON path; <data_dir>/config.json if empty",
    )
    state_dir: str = Field(
        default="data/state",
        description="Directory for Playwright session state",
    )
    max_session_age_hours: int = Field(
        default=24,
        description="Maximum age of Playwright session before re-authentication",
    )

    # Remote config store
    upstash_redis_rest_url: str = Field(default="", description="Upstash Redis REST URL")
    upstash_redis_rest_token: str = Field(default="", description="Upstash Redis REST token")

    # Calendar content
    timezone: str = Field(
        default="America/New_York",
        description="Zone the booking page's wall-clock times are in",
    )
    default_title: str = Field(
        default="Mathnasium Session",
        description="Event title when none is found on the page",
    )
    default_location: str = Field(
        default="Mathnasium of Portland",
        description="Location written on every event",
    )

    # HTTP server
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=3000, description="Bind port")

    # Logging
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (for production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = {
        "env_prefix": "",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def config_path(self) -> Path:
        if self.config_file:
            return Path(self.config_file)
        return Path(self.data_dir) / "config.json"


# Singleton pattern
_settings: ServiceSettings | None = None


def get_settings() -> ServiceSettings:
    """Get the service settings singleton.

    Returns:
        ServiceSettings: Settings instance
    """
    global _settings
    if _settings is None:
        _settings = ServiceSettings()
    return _settings


class FeedConfig(BaseModel):
    """The persisted configuration record."""

    appointy_email: str = ""
    appointy_password: str = ""
    appointy_booking_url: str = DEFAULT_BOOKING_URL
    calendar_token: str = ""
    calendar_name: str = DEFAULT_CALENDAR_NAME
    flaresolverr_url: str = ""
    browser_ws_endpoint: str = ""

    @classmethod
    def from_settings(cls, settings: ServiceSettings) -> "FeedConfig":
        return cls(
            appointy_email=settings.appointy_email,
            appointy_password=settings.appointy_password,
            appointy_booking_url=settings.appointy_booking_url,
            calendar_token=settings.calendar_token,
            calendar_name=settings.calendar_name,
            flaresolverr_url=settings.flaresolverr_url,
            browser_ws_endpoint=settings.browser_ws_endpoint,
        )

    def require_credentials(self) -> None:
        """Raise ConfigurationMissing unless the Appointy login is set."""
        if not self.appointy_email or not self.appointy_password:
            raise ConfigurationMissing("Appointy credentials not configured")

    def completeness(self) -> dict[str, bool]:
        """Which fields are set. Booleans only; never the values."""
        return {
            "appointy_email": bool(self.appointy_email),
            "appointy_password": bool(self.appointy_password),
            "appointy_booking_url": bool(self.appointy_booking_url),
            "calendar_token": bool(self.calendar_token),
            "flaresolverr_url": bool(self.flaresolverr_url),
            "browser_ws_endpoint": bool(self.browser_ws_endpoint),
        }


class ConfigProvider(ABC):
    """Where the FeedConfig record lives."""

    name: str = "provider"

    @abstractmethod
    def load(self) -> FeedConfig | None:
        """Return the record, or None when nothing is configured."""

    @abstractmethod
    def save(self, config: FeedConfig) -> None:
        """Persist the record."""

    def require(self) -> FeedConfig:
        config = self.load()
        if config is None:
            raise ConfigurationMissing("Not configured")
        return config


class EnvConfigProvider(ConfigProvider):
    """Static record built from ServiceSettings."""

    name = "env"

    def __init__(self, settings: ServiceSettings) -> None:
        self.settings = settings

    def load(self) -> FeedConfig | None:
        config = FeedConfig.from_settings(self.settings)
        if not (config.appointy_email or config.calendar_token):
            return None
        return config

    def save(self, config: FeedConfig) -> None:
        raise NotImplementedError("Environment configuration is read-only")


class FileConfigProvider(ConfigProvider):
    """Record stored as JSON on disk, falling back to another provider."""

    name = "file"

    def __init__(self, path: Path, fallback: ConfigProvider | None = None) -> None:
        self.path = Path(path)
        self.fallback = fallback

    def load(self) -> FeedConfig | None:
        if not self.path.exists():
            return self.fallback.load() if self.fallback else None
        try:
            return FeedConfig.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            log.warning("config_file_unreadable", path=str(self.path), error=str(e))
            return self.fallback.load() if self.fallback else None

    def save(self, config: FeedConfig) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(config.model_dump_json(indent=2), encoding="utf-8")
        log.info("config_saved", provider=self.name, path=str(self.path))


class UpstashConfigProvider(ConfigProvider):
    """Record stored in Upstash Redis through its REST API."""

    name = "upstash"

    def __init__(
        self,
        url: str,
        token: str,
        key: str = UPSTASH_CONFIG_KEY,
        fallback: ConfigProvider | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.url = url.rstrip("/")
        self.token = token
        self.key = key
        self.fallback = fallback
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    @staticmethod
    def _result(resp: requests.Response) -> str | None:
        """The "result" field of an Upstash reply; ValueError if not JSON."""
        body = resp.json()
        if not isinstance(body, dict):
            raise ValueError(f"Unexpected Upstash reply: {type(body).__name__}")
        return body.get("result")

    def load(self) -> FeedConfig | None:
        try:
            resp = requests.get(
                f"{self.url}/get/{self.key}",
                headers=self._headers(),
                timeout=self.timeout,
            )
            resp.raise_for_status()
            stored = self._result(resp)
        except (requests.RequestException, ValueError) as e:
            log.warning("config_store_unreachable", provider=self.name, error=str(e))
            stored = None

        if stored:
            try:
                return FeedConfig.model_validate(json.loads(stored))
            except (ValueError, ValidationError) as e:
                log.warning("config_store_invalid", provider=self.name, error=str(e))

        return self.fallback.load() if self.fallback else None

    def save(self, config: FeedConfig) -> None:
        resp = requests.post(
            f"{self.url}/set/{self.key}",
            headers=self._headers(),
            data=config.model_dump_json(),
            timeout=self.timeout,
        )
        resp.raise_for_status()
        log.info("config_saved", provider=self.name, key=self.key)

    def ping(self) -> str:
        """Short status string for the health endpoint."""
        try:
            resp = requests.get(
                f"{self.url}/get/{self.key}",
                headers=self._headers(),
                timeout=5,
            )
            resp.raise_for_status()
            stored = self._result(resp)
        except (requests.RequestException, ValueError) as e:
            return f"error: {type(e).__name__}"
        return "connected" if stored else "connected (no config)"


def build_config_provider(settings: ServiceSettings) -> ConfigProvider:
    """Upstash when its URL and token are set, otherwise the JSON file.

    Both fall back to the environment when they hold no record.
    """
    env = EnvConfigProvider(settings)
    if settings.upstash_redis_rest_url and settings.upstash_redis_rest_token:
        return UpstashConfigProvider(
            settings.upstash_redis_rest_url,
            settings.upstash_redis_rest_token,
            fallback=env,
        )
    return FileConfigProvider(settings.config_path, fallback=env)
