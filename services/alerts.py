"""Utilities for notifying administrators about critical errors."""
from __future__ import annotations

import asyncio
import logging
import sys
import traceback
from datetime import UTC, datetime
from typing import Sequence

from aiogram import Bot


MAX_ALERT_LENGTH = 3500

# logger name prefix -> stage of the price watcher it belongs to
STAGES = (
    ("services.fetcher", "page fetch"),
    ("services.extraction", "price extraction"),
    ("services.monitor", "price check"),
    ("services.registry", "tracking registry"),
    ("services.push", "push delivery"),
    ("services.relay", "chat relay"),
    ("bot", "bot command"),
)


def describe_stage(logger_name: str) -> str:
    for prefix, stage in STAGES:
        if logger_name == prefix or logger_name.startswith(prefix + "."):
            return stage
    return "price watcher"


async def send_critical_alert(bot: Bot, admin_chat_ids: Sequence[int], message: str) -> None:
    """Send a critical alert to every admin chat.

    Args:
        bot: Telegram bot instance
        admin_chat_ids: Admin chat IDs
        message: Alert message to send
    """
    if not admin_chat_ids:
        return

    full_message = f"🚨 <b>CRITICAL: price watch failing</b>\n\n{message}"
    for chat_id in admin_chat_ids:
        try:
            await bot.send_message(chat_id, full_message, parse_mode="HTML")
        except Exception as exc:
            sys.stderr.write(f"Failed to send critical alert to {chat_id}: {exc!r}\n")


class AdminAlertHandler(logging.Handler):
    """Logging handler that forwards error records to Telegram admins."""

    def __init__(
        self,
        bot: Bot,
        admin_chat_ids: Sequence[int],
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        super().__init__(level=logging.ERROR)
        self._bot = bot
        self._admin_chat_ids = tuple(admin_chat_ids)
        self._loop = loop
        self.setFormatter(logging.Formatter("%(message)s"))

    async def _notify(self, message: str) -> None:
        for chat_id in self._admin_chat_ids:
            try:
                await self._bot.send_message(chat_id, message)
            except Exception as exc:  # pragma: no cover - best-effort logging
                sys.stderr.write(f"Failed to notify admin {chat_id}: {exc!r}\n")

    def _build_message(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S %Z")

        if record.exc_info:
            details = "".join(traceback.format_exception(*record.exc_info))
        else:
            details = self.format(record)

        details = details[-MAX_ALERT_LENGTH:]
        header = (
            f"⚠️ {record.levelname} during {describe_stage(record.name)}\n"
            f"Time: {timestamp}\n"
            f"Logger: {record.name}\n"
            f"Source: {record.pathname}:{record.lineno}\n\n"
        )
        return f"{header}{details}"

    def emit(self, record: logging.LogRecord) -> None:
        if not self._admin_chat_ids or record.levelno < logging.ERROR:
            return

        coroutine = self._notify(self._build_message(record))

        loop = self._loop
        if loop is None or loop.is_closed():
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None

        if loop is None or not loop.is_running():
            asyncio.run(coroutine)
            return

        try:
            current_loop = asyncio.get_running_loop()
        except RuntimeError:
            current_loop = None

        if current_loop is loop:
            loop.call_soon(asyncio.create_task, coroutine)
        else:
            loop.call_soon_threadsafe(asyncio.create_task, coroutine)


__all__ = ["AdminAlertHandler", "MAX_ALERT_LENGTH", "describe_stage", "send_critical_alert"]
