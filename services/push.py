"""Push delivery of price alerts to the chat that requested tracking."""
from __future__ import annotations

import asyncio
import logging
from html import escape
from typing import Any

from aiogram import Bot
from aiogram.exceptions import (
    TelegramAPIError,
    TelegramBadRequest,
    TelegramForbiddenError,
    TelegramRetryAfter,
)

from config import settings
from models import Alert
from services.errors import DeliveryPermanentFailure

logger = logging.getLogger(__name__)

PERMANENT_BAD_REQUEST_HINTS = ("chat not found", "user is deactivated", "bot was kicked")


def truncate_url(url: str, max_len: int) -> str:
    if len(url) <= max_len:
        return url
    return url[: max_len - 3] + "..."


def format_price(value) -> str:
    return f"{value:.2f}"


def build_payload(alert: Alert) -> dict[str, Any]:
    """Notification payload: title, body, icon and the page to open."""
    price = format_price(alert.current_price)
    return {
        "title": f"Price Drop! Now {price}",
        "body": f"Item at {truncate_url(alert.url, 40)} is now {price}!",
        "icon": settings.NOTIFICATION_ICON,
        "url": alert.url,
    }


def render_payload(payload: dict[str, Any]) -> str:
    url = escape(payload["url"], quote=True)
    return "\n".join([
        f"🔔 <b>{escape(payload['title'])}</b>",
        escape(payload["body"]),
        "",
        f"🌐 <a href=\"{url}\">Open product page</a>",
    ])


class PushNotifier:
    """Sends alert payloads to a stored subscription (a Telegram chat)."""

    def __init__(self, bot: Bot, max_attempts: int = 3) -> None:
        self.bot = bot
        self.max_attempts = max_attempts

    async def deliver(self, alert: Alert, chat_id: int) -> bool:
        """Deliver ``alert`` to ``chat_id``.

        Returns ``False`` on transient failures. Raises
        :class:`DeliveryPermanentFailure` when the subscription is gone and
        the trackers bound to it should stop.
        """
        text = render_payload(build_payload(alert))
        attempts = 0
        while attempts < self.max_attempts:
            attempts += 1
            try:
                await self.bot.send_message(chat_id=chat_id, text=text, parse_mode="HTML")
                logger.info("Push notification sent to %s for %s", chat_id, alert.item_id)
                return True
            except TelegramRetryAfter as exc:
                logger.info("Flood control for %s, retrying in %ss", chat_id, exc.retry_after)
                await asyncio.sleep(exc.retry_after + 1)
            except TelegramForbiddenError as exc:
                logger.warning("Subscription %s rejected the bot: %s", chat_id, exc.message)
                raise DeliveryPermanentFailure(chat_id, exc.message) from exc
            except TelegramBadRequest as exc:
                message = exc.message.lower() if exc.message else ""
                if any(hint in message for hint in PERMANENT_BAD_REQUEST_HINTS):
                    logger.warning("Subscription %s is invalid: %s", chat_id, exc.message)
                    raise DeliveryPermanentFailure(chat_id, exc.message) from exc
                logger.warning("Bad request when sending to %s: %s", chat_id, exc)
                return False
            except TelegramAPIError as exc:
                logger.warning("Error sending push notification to %s: %s", chat_id, exc)
                return False
        logger.error("Failed to send push notification to %s for %s after retries", chat_id, alert.item_id)
        return False


__all__ = ["PushNotifier", "build_payload", "render_payload", "truncate_url"]
