from __future__ import annotations

import pytest

from config import settings
from services import runtime


def test_settings_read_from_environment():
    assert settings.ADMIN_CHAT_IDS == (123456789, 987654321)
    assert settings.CHECK_INTERVAL_SECONDS == 30
    assert settings.SUBSCRIBER_QUEUE_SIZE == 4
    assert "User-Agent" in settings.HEADERS


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("CHECK_INTERVAL_SECONDS", "0"),
        ("CHECK_INTERVAL_SECONDS", "soon"),
        ("REQUEST_TIMEOUT", "-1"),
        ("REQUEST_MAX_RETRIES", "-1"),
        ("SUBSCRIBER_QUEUE_SIZE", "0"),
        ("ADMIN_CHAT_IDS", "admin"),
    ],
)
def test_invalid_values_are_rejected(monkeypatch, name, value):
    monkeypatch.setenv(name, value)

    with pytest.raises(ValueError):
        settings.reload()


def test_validate_requires_token(monkeypatch):
    monkeypatch.setenv("BOT_TOKEN", "")
    settings.reload()

    with pytest.raises(ValueError):
        settings.validate()


def test_update_check_interval_without_scheduler():
    runtime.update_check_interval(45)

    assert settings.CHECK_INTERVAL_SECONDS == 45
    with pytest.raises(ValueError):
        runtime.update_check_interval(0)
