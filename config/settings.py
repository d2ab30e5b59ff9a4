"""Configuration helpers for environment-driven settings."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Tuple

from dotenv import load_dotenv

if os.getenv("PYTEST_CURRENT_TEST") is None:
    load_dotenv()


def _split_csv(value: str) -> Tuple[str, ...]:
    return tuple(entry.strip() for entry in value.split(",") if entry.strip())


def _read_float(name: str, default: str) -> float:
    try:
        return float(os.getenv(name, default))
    except ValueError as exc:
        raise ValueError(f"{name} must be a number") from exc


def _read_int(name: str, default: str) -> int:
    try:
        return int(os.getenv(name, default))
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc


@dataclass(slots=True)
class Settings:
    """Runtime application settings sourced from environment variables."""

    BOT_TOKEN: str = field(init=False)
    ADMIN_CHAT_IDS: Tuple[int, ...] = field(init=False)
    CHECK_INTERVAL_SECONDS: int = field(init=False)
    HEADERS: dict[str, str] = field(init=False)
    REQUEST_TIMEOUT: float = field(init=False)
    REQUEST_MAX_RETRIES: int = field(init=False)
    REQUEST_BACKOFF_FACTOR: float = field(init=False)
    REQUEST_DELAY_SECONDS: float = field(init=False)
    SUBSCRIBER_QUEUE_SIZE: int = field(init=False)
    FAILURE_ALERT_THRESHOLD: int = field(init=False)
    NOTIFICATION_ICON: str = field(init=False)

    def __post_init__(self) -> None:
        self.reload()

    def reload(self) -> None:
        self.BOT_TOKEN = os.getenv("BOT_TOKEN", "").strip()
        try:
            self.ADMIN_CHAT_IDS = tuple(
                int(chat_id)
                for chat_id in _split_csv(os.getenv("ADMIN_CHAT_IDS", ""))
            )
        except ValueError as exc:
            raise ValueError("ADMIN_CHAT_IDS must be a comma separated list of integers") from exc

        interval = _read_int("CHECK_INTERVAL_SECONDS", "30")
        if interval <= 0:
            raise ValueError("CHECK_INTERVAL_SECONDS must be positive")
        self.CHECK_INTERVAL_SECONDS = interval

        self.HEADERS = {
            "User-Agent": (
                "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
                "AppleWebKit/537.36 (KHTML, like Gecko) "
                "Chrome/91.0.4472.124 Safari/537.36"
            ),
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
        }

        timeout = _read_float("REQUEST_TIMEOUT", "20")
        if timeout <= 0:
            raise ValueError("REQUEST_TIMEOUT must be positive")
        self.REQUEST_TIMEOUT = timeout

        retries = _read_int("REQUEST_MAX_RETRIES", "2")
        if retries < 0:
            raise ValueError("REQUEST_MAX_RETRIES must be zero or positive")
        self.REQUEST_MAX_RETRIES = retries

        backoff = _read_float("REQUEST_BACKOFF_FACTOR", "2.0")
        if backoff < 0:
            raise ValueError("REQUEST_BACKOFF_FACTOR cannot be negative")
        self.REQUEST_BACKOFF_FACTOR = backoff

        delay = _read_float("REQUEST_DELAY_SECONDS", "2.0")
        if delay < 0:
            raise ValueError("REQUEST_DELAY_SECONDS cannot be negative")
        self.REQUEST_DELAY_SECONDS = delay

        queue_size = _read_int("SUBSCRIBER_QUEUE_SIZE", "256")
        if queue_size <= 0:
            raise ValueError("SUBSCRIBER_QUEUE_SIZE must be positive")
        self.SUBSCRIBER_QUEUE_SIZE = queue_size

        threshold = _read_int("FAILURE_ALERT_THRESHOLD", "5")
        if threshold <= 0:
            raise ValueError("FAILURE_ALERT_THRESHOLD must be positive")
        self.FAILURE_ALERT_THRESHOLD = threshold

        self.NOTIFICATION_ICON = os.getenv("NOTIFICATION_ICON", "/icon.png").strip()

    def validate(self) -> None:
        if not self.BOT_TOKEN:
            raise ValueError("BOT_TOKEN is required in .env file")
        if not self.ADMIN_CHAT_IDS:
            raise ValueError("ADMIN_CHAT_IDS is required in .env file")

settings = Settings()
