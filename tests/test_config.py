"""Tests for lifecycle settings."""

import logging

import pytest
from pydantic import ValidationError

from lifecycle.config import ARCHIVE_REASONS, Settings, configure_logging


class TestSettings:
    """Settings defaults and environment overrides."""

    def test_defaults(self, monkeypatch):
        for name in ("ORDERS_LANGUAGE", "ORDERS_SETTLE_DELAY_SECONDS", "ORDERS_ARCHIVE_REASON_OVERRIDE"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)

        assert settings.settle_delay_seconds == 0.5
        assert settings.archive_recency_window_seconds == 5.0
        assert settings.archive_reason == ARCHIVE_REASONS["en"]

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("ORDERS_LANGUAGE", "ar")
        monkeypatch.setenv("ORDERS_SETTLE_DELAY_SECONDS", "1.5")

        settings = Settings(_env_file=None)

        assert settings.language == "ar"
        assert settings.settle_delay_seconds == 1.5
        assert settings.archive_reason == "تم الأرشفة من قبل المستخدم"

    def test_override_reason(self):
        settings = Settings(_env_file=None, archive_reason_override="Closed at counter")

        assert settings.archive_reason == "Closed at counter"

    def test_rejects_unknown_language(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, language="fr")

    def test_rejects_negative_delay(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, settle_delay_seconds=-1)

    def test_configure_logging(self, monkeypatch):
        calls = []
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

        configure_logging(Settings(_env_file=None, log_level="debug"))

        assert calls[0]["level"] == logging.DEBUG
