from __future__ import annotations

from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from aiogram.exceptions import (
    TelegramBadRequest,
    TelegramForbiddenError,
    TelegramNetworkError,
    TelegramRetryAfter,
)
from aiogram.methods import SendMessage

from models import Alert
from services.errors import DeliveryPermanentFailure
from services.push import PushNotifier, build_payload, truncate_url

METHOD = SendMessage(chat_id=42, text="alert")


def make_alert(url: str = "https://shop.example.com/products/very-long-product-slug-123") -> Alert:
    return Alert(
        item_id="A",
        url=url,
        current_price=Decimal("95"),
        target_price=Decimal("100"),
        display_price="$95.00",
    )


def test_build_payload_fields():
    payload = build_payload(make_alert())

    assert set(payload) == {"title", "body", "icon", "url"}
    assert payload["title"] == "Price Drop! Now 95.00"
    assert payload["body"] == "Item at https://shop.example.com/products/ver... is now 95.00!"
    assert payload["url"] == "https://shop.example.com/products/very-long-product-slug-123"
    assert payload["icon"] == "/icon.png"


def test_truncate_url_keeps_short_urls():
    assert truncate_url("https://a.io", 40) == "https://a.io"
    assert len(truncate_url("x" * 100, 40)) == 40


@pytest.mark.asyncio
async def test_deliver_success():
    bot = AsyncMock()
    notifier = PushNotifier(bot)

    assert await notifier.deliver(make_alert(), 42) is True

    bot.send_message.assert_awaited_once()
    kwargs = bot.send_message.await_args.kwargs
    assert kwargs["chat_id"] == 42
    assert "Price Drop! Now 95.00" in kwargs["text"]


@pytest.mark.asyncio
async def test_blocked_bot_is_a_permanent_failure():
    bot = AsyncMock()
    bot.send_message.side_effect = TelegramForbiddenError(method=METHOD, message="Forbidden: bot was blocked by the user")
    notifier = PushNotifier(bot)

    with pytest.raises(DeliveryPermanentFailure) as excinfo:
        await notifier.deliver(make_alert(), 42)

    assert excinfo.value.subscription == 42


@pytest.mark.asyncio
async def test_chat_not_found_is_a_permanent_failure():
    bot = AsyncMock()
    bot.send_message.side_effect = TelegramBadRequest(method=METHOD, message="Bad Request: chat not found")

    with pytest.raises(DeliveryPermanentFailure):
        await PushNotifier(bot).deliver(make_alert(), 42)


@pytest.mark.asyncio
async def test_network_error_is_transient():
    bot = AsyncMock()
    bot.send_message.side_effect = TelegramNetworkError(method=METHOD, message="timeout")

    assert await PushNotifier(bot).deliver(make_alert(), 42) is False


@pytest.mark.asyncio
async def test_flood_control_is_retried():
    bot = AsyncMock()
    bot.send_message.side_effect = [
        TelegramRetryAfter(method=METHOD, message="Too Many Requests", retry_after=1),
        None,
    ]

    with patch("services.push.asyncio.sleep", new=AsyncMock()) as mock_sleep:
        assert await PushNotifier(bot).deliver(make_alert(), 42) is True

    mock_sleep.assert_awaited_once_with(2)
    assert bot.send_message.await_count == 2


@pytest.mark.asyncio
async def test_flood_control_exhausts_attempts():
    bot = AsyncMock()
    bot.send_message.side_effect = TelegramRetryAfter(method=METHOD, message="Too Many Requests", retry_after=0)

    with patch("services.push.asyncio.sleep", new=AsyncMock()):
        assert await PushNotifier(bot, max_attempts=2).deliver(make_alert(), 42) is False

    assert bot.send_message.await_count == 2
