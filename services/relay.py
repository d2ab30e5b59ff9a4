"""Forwarding of broadcast alerts to subscribed Telegram chats."""
from __future__ import annotations

import asyncio
import logging
from html import escape

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError, TelegramForbiddenError

from models import Alert
from services.broadcaster import AlertBroadcaster, Subscriber

logger = logging.getLogger(__name__)


def format_alert_message(alert: Alert) -> str:
    record = alert.to_dict()
    url = escape(record["url"], quote=True)
    return "\n".join([
        "🔥 <b>Price target reached!</b>",
        f"🆔 <code>{escape(record['id'])}</code>",
        f"💰 <b>{escape(record['priceString'])}</b> (target {record['targetPrice']:.2f})",
        f"🕒 {escape(record['timestamp'])}",
        "",
        f"🌐 <a href=\"{url}\">Open product page</a>",
    ])


class ChatRelay:
    """Owns one broadcaster subscription and delivery task per chat."""

    def __init__(self, bot: Bot, broadcaster: AlertBroadcaster) -> None:
        self.bot = bot
        self.broadcaster = broadcaster
        self._subscriptions: dict[int, tuple[Subscriber, asyncio.Task]] = {}

    def is_subscribed(self, chat_id: int) -> bool:
        return chat_id in self._subscriptions

    def subscribe_chat(self, chat_id: int) -> bool:
        if chat_id in self._subscriptions:
            return False
        subscriber = self.broadcaster.subscribe()
        task = asyncio.create_task(self._pump(chat_id, subscriber))
        self._subscriptions[chat_id] = (subscriber, task)
        return True

    def unsubscribe_chat(self, chat_id: int) -> bool:
        entry = self._subscriptions.pop(chat_id, None)
        if entry is None:
            return False
        subscriber, _ = entry
        # closing ends the pump loop on its own
        self.broadcaster.unsubscribe(subscriber)
        return True

    async def _pump(self, chat_id: int, subscriber: Subscriber) -> None:
        try:
            async for alert in subscriber:
                try:
                    await self.bot.send_message(
                        chat_id=chat_id,
                        text=format_alert_message(alert),
                        parse_mode="HTML",
                    )
                except TelegramForbiddenError:
                    logger.warning("Chat %s blocked the bot; dropping its subscription", chat_id)
                    break
                except TelegramAPIError as exc:
                    logger.warning("Failed to relay alert %s to %s: %s", alert.item_id, chat_id, exc)
        finally:
            self.broadcaster.unsubscribe(subscriber)
            current = self._subscriptions.get(chat_id)
            if current is not None and current[0] is subscriber:
                del self._subscriptions[chat_id]
            logger.info("Alert relay for chat %s finished", chat_id)

    async def close(self) -> None:
        entries = list(self._subscriptions.values())
        self._subscriptions.clear()
        for subscriber, task in entries:
            self.broadcaster.unsubscribe(subscriber)
            task.cancel()
        await asyncio.gather(*(task for _, task in entries), return_exceptions=True)


__all__ = ["ChatRelay", "format_alert_message"]
