from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from aiogram.exceptions import TelegramForbiddenError
from aiogram.methods import SendMessage

from models import Alert
from services.broadcaster import AlertBroadcaster
from services.relay import ChatRelay, format_alert_message


def make_alert(item_id: str = "A") -> Alert:
    return Alert(
        item_id=item_id,
        url="https://shop.example.com/p/1?a=1&b=2",
        current_price=Decimal("95"),
        target_price=Decimal("100"),
        display_price="$95.00",
        timestamp=datetime(2024, 5, 1, 12, 30, tzinfo=UTC),
    )


async def settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


def test_format_alert_message_escapes_and_includes_fields():
    text = format_alert_message(make_alert())

    assert "<code>A</code>" in text
    assert "$95.00" in text
    assert "target 100.00" in text
    assert "2024-05-01T12:30:00+00:00" in text
    assert "a=1&amp;b=2" in text


@pytest.mark.asyncio
async def test_subscribed_chat_receives_alerts():
    bot = AsyncMock()
    broadcaster = AlertBroadcaster()
    relay = ChatRelay(bot, broadcaster)

    assert relay.subscribe_chat(10) is True
    assert relay.subscribe_chat(10) is False

    broadcaster.publish(make_alert())
    await settle()

    bot.send_message.assert_awaited_once()
    assert bot.send_message.await_args.kwargs["chat_id"] == 10
    await relay.close()


@pytest.mark.asyncio
async def test_unsubscribe_stops_delivery():
    bot = AsyncMock()
    broadcaster = AlertBroadcaster()
    relay = ChatRelay(bot, broadcaster)
    relay.subscribe_chat(10)
    await settle()

    assert relay.unsubscribe_chat(10) is True
    assert relay.unsubscribe_chat(10) is False
    await settle()

    assert broadcaster.publish(make_alert()) == 0
    bot.send_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_blocked_chat_is_dropped():
    bot = AsyncMock()
    bot.send_message.side_effect = TelegramForbiddenError(
        method=SendMessage(chat_id=10, text="x"),
        message="Forbidden: bot was blocked by the user",
    )
    broadcaster = AlertBroadcaster()
    relay = ChatRelay(bot, broadcaster)
    relay.subscribe_chat(10)

    broadcaster.publish(make_alert())
    await settle()

    assert relay.is_subscribed(10) is False
    assert len(broadcaster) == 0
