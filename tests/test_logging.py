"""Tests for log setup and secret masking."""

import logging

from src.appointy_sync.logging import REDACTED, redact_secrets, setup_logging


class TestRedactSecrets:
    def test_masks_credentials(self):
        event = {"event": "config_saved", "password": "hunter2", "token": "abc", "path": "data"}

        result = redact_secrets(None, "info", event)

        assert result["password"] == REDACTED
        assert result["token"] == REDACTED
        assert result["path"] == "data"

    def test_empty_values_left_alone(self):
        assert redact_secrets(None, "info", {"calendar_token": ""})["calendar_token"] == ""


class TestSetupLogging:
    def test_levels(self):
        setup_logging(log_level="debug")

        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("uvicorn.access").level == logging.WARNING

    def test_unknown_level_defaults_to_info(self):
        setup_logging(json_output=True, log_level="chatty")
        assert logging.getLogger().level == logging.INFO
