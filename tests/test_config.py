"""Tests for settings and configuration providers."""

import json

import pytest
import requests

from src.appointy_sync import config as config_module
from src.appointy_sync.config import (
    DEFAULT_BOOKING_URL,
    EnvConfigProvider,
    FeedConfig,
    FileConfigProvider,
    ServiceSettings,
    UpstashConfigProvider,
    build_config_provider,
)
from src.appointy_sync.errors import ConfigurationMissing


class FakeResponse:
    def __init__(self, body: dict, status_code: int = 200) -> None:
        self.body = body
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if isinstance(self.body, Exception):
            raise self.body
        return self.body


class TestServiceSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("FETCH_METHOD", raising=False)
        monkeypatch.delenv("TIMEZONE", raising=False)
        settings = ServiceSettings(_env_file=None)

        assert settings.fetch_method == "flaresolverr"
        assert settings.appointy_booking_url == DEFAULT_BOOKING_URL
        assert settings.timezone == "America/New_York"

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("APPOINTY_EMAIL", "parent@example.com")
        monkeypatch.setenv("FETCH_METHOD", "browser")
        monkeypatch.setenv("PORT", "8080")

        settings = ServiceSettings(_env_file=None)

        assert settings.appointy_email == "parent@example.com"
        assert settings.fetch_method == "browser"
        assert settings.port == 8080

    def test_config_path(self, tmp_path):
        assert ServiceSettings(_env_file=None, data_dir=str(tmp_path), config_file="").config_path == (
            tmp_path / "config.json"
        )
        custom = tmp_path / "feed.json"
        assert ServiceSettings(_env_file=None, config_file=str(custom)).config_path == custom


class TestFeedConfig:
    def test_require_credentials(self):
        with pytest.raises(ConfigurationMissing):
            FeedConfig(appointy_email="a@example.com").require_credentials()
        FeedConfig(appointy_email="a@example.com", appointy_password="pw").require_credentials()

    def test_completeness_has_no_values(self, feed_config):
        report = feed_config.completeness()

        assert all(isinstance(value, bool) for value in report.values())
        assert report["appointy_password"] is True
        assert report["browser_ws_endpoint"] is False
        assert "hunter2" not in json.dumps(report)


class TestEnvConfigProvider:
    def test_nothing_set(self, settings):
        assert EnvConfigProvider(settings).load() is None

    def test_require_raises(self, settings):
        with pytest.raises(ConfigurationMissing, match="Not configured"):
            EnvConfigProvider(settings).require()

    def test_record_from_settings(self, settings):
        settings = settings.model_copy(
            update={"appointy_email": "parent@example.com", "calendar_token": "tok"}
        )
        config = EnvConfigProvider(settings).load()
        assert config.appointy_email == "parent@example.com"
        assert config.calendar_token == "tok"

    def test_read_only(self, settings):
        with pytest.raises(NotImplementedError):
            EnvConfigProvider(settings).save(FeedConfig())


class TestFileConfigProvider:
    def test_save_then_load(self, tmp_path, feed_config):
        provider = FileConfigProvider(tmp_path / "nested" / "config.json")

        provider.save(feed_config)

        assert provider.load() == feed_config

    def test_missing_file_uses_fallback(self, tmp_path, feed_config):
        from tests.conftest import MemoryConfigProvider

        provider = FileConfigProvider(
            tmp_path / "config.json", fallback=MemoryConfigProvider(feed_config)
        )
        assert provider.load() == feed_config

    def test_missing_file_no_fallback(self, tmp_path):
        assert FileConfigProvider(tmp_path / "config.json").load() is None

    def test_corrupt_file_uses_fallback(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json", encoding="utf-8")
        assert FileConfigProvider(path).load() is None


class TestUpstashConfigProvider:
    def test_load(self, monkeypatch, feed_config):
        calls = []

        def fake_get(url, headers, timeout):
            calls.append((url, headers))
            return FakeResponse({"result": feed_config.model_dump_json()})

        monkeypatch.setattr(config_module.requests, "get", fake_get)
        provider = UpstashConfigProvider("https://redis.example.com/", "rest-token")

        assert provider.load() == feed_config
        assert calls == [
            (
                "https://redis.example.com/get/appointy:config",
                {"Authorization": "Bearer rest-token"},
            )
        ]

    def test_empty_store_uses_fallback(self, monkeypatch, settings):
        monkeypatch.setattr(
            config_module.requests, "get", lambda url, headers, timeout: FakeResponse({"result": None})
        )
        settings = settings.model_copy(update={"calendar_token": "tok"})
        provider = UpstashConfigProvider("https://redis.example.com", "t", fallback=EnvConfigProvider(settings))

        assert provider.load().calendar_token == "tok"

    def test_unreachable_store_uses_fallback(self, monkeypatch):
        def boom(url, headers, timeout):
            raise requests.ConnectionError("down")

        monkeypatch.setattr(config_module.requests, "get", boom)
        assert UpstashConfigProvider("https://redis.example.com", "t").load() is None

    def test_save(self, monkeypatch, feed_config):
        sent = {}

        def fake_post(url, headers, data, timeout):
            sent.update(url=url, data=data)
            return FakeResponse({"result": "OK"})

        monkeypatch.setattr(config_module.requests, "post", fake_post)
        UpstashConfigProvider("https://redis.example.com", "t").save(feed_config)

        assert sent["url"] == "https://redis.example.com/set/appointy:config"
        assert FeedConfig.model_validate_json(sent["data"]) == feed_config

    @pytest.mark.parametrize(
        ("body", "expected"),
        [({"result": "{}"}, "connected"), ({"result": None}, "connected (no config)")],
    )
    def test_ping(self, monkeypatch, body, expected):
        monkeypatch.setattr(
            config_module.requests, "get", lambda url, headers, timeout: FakeResponse(body)
        )
        assert UpstashConfigProvider("https://redis.example.com", "t").ping() == expected

    def test_ping_error(self, monkeypatch):
        monkeypatch.setattr(
            config_module.requests,
            "get",
            lambda url, headers, timeout: FakeResponse({}, status_code=401),
        )
        assert UpstashConfigProvider("https://redis.example.com", "t").ping() == "error: HTTPError"

    @pytest.mark.parametrize("body", [ValueError("Expecting value: line 1 column 1"), ["OK"]])
    def test_ping_unexpected_reply(self, monkeypatch, body):
        """An HTML error page or a non-object reply is reported, not raised."""
        monkeypatch.setattr(
            config_module.requests, "get", lambda url, headers, timeout: FakeResponse(body)
        )
        assert UpstashConfigProvider("https://redis.example.com", "t").ping() == "error: ValueError"

    def test_load_non_object_reply_uses_fallback(self, monkeypatch):
        monkeypatch.setattr(
            config_module.requests, "get", lambda url, headers, timeout: FakeResponse(["OK"])
        )
        assert UpstashConfigProvider("https://redis.example.com", "t").load() is None


class TestBuildConfigProvider:
    def test_file_by_default(self, settings):
        provider = build_config_provider(settings)
        assert isinstance(provider, FileConfigProvider)
        assert isinstance(provider.fallback, EnvConfigProvider)

    def test_upstash_when_configured(self, settings):
        settings = settings.model_copy(
            update={
                "upstash_redis_rest_url": "https://redis.example.com",
                "upstash_redis_rest_token": "t",
            }
        )
        assert isinstance(build_config_provider(settings), UpstashConfigProvider)

    def test_upstash_needs_both(self, settings):
        settings = settings.model_copy(update={"upstash_redis_rest_url": "https://redis.example.com"})
        assert isinstance(build_config_provider(settings), FileConfigProvider)
