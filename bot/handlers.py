"""Telegram command handlers for the bot."""
from __future__ import annotations

import html
import logging
import uuid
from decimal import Decimal

from aiogram import Router
from aiogram.filters import Command, CommandObject, CommandStart
from aiogram.types import Message

from bot.filters import IsAdmin
from config import settings
from models import PriceCheck, TrackedItem
from services.errors import DuplicateError, ParseError
from services.monitor import PriceMonitor
from services.prices import parse_price
from services.relay import ChatRelay
from services.runtime import update_check_interval

logger = logging.getLogger(__name__)
router = Router()

HELP_TEXT = (
    "📖 <b>Price tracker</b>\n\n"
    "<b>Commands:</b>\n"
    "/check URL PRICE - Check the current price once\n"
    "/track URL PRICE [ID] - Watch a page until the price drops to PRICE\n"
    "/untrack ID - Stop watching an item\n"
    "/list - Show tracked items\n"
    "/subscribe - Receive every price alert in this chat\n"
    "/unsubscribe - Stop receiving alerts\n"
    "/interval SECONDS - Change how often prices are checked\n"
    "/help - Show this help"
)


def _format_price(value: Decimal | None) -> str:
    return "-" if value is None or value <= 0 else f"{value:.2f}"


def _parse_price_arg(value: str) -> Decimal:
    try:
        price = parse_price(value)
    except ParseError as exc:
        raise ValueError("Price must be a number") from exc
    if price <= 0:
        raise ValueError("Price must be positive")
    return price


def _parse_check_payload(payload: str | None) -> tuple[str, Decimal]:
    parts = (payload or "").split()
    if len(parts) != 2:
        raise ValueError("Usage: /check URL PRICE")
    return parts[0], _parse_price_arg(parts[1])


def _parse_track_payload(payload: str | None) -> tuple[str, Decimal, str]:
    parts = (payload or "").split()
    if len(parts) not in (2, 3):
        raise ValueError("Usage: /track URL PRICE [ID]")
    item_id = parts[2] if len(parts) == 3 else uuid.uuid4().hex[:8]
    return parts[0], _parse_price_arg(parts[1]), item_id


def _compose_check_reply(check: PriceCheck) -> str:
    if not check.success:
        return f"❌ <b>Check failed:</b> {html.escape(check.message)}"

    verdict = "✅ At or below your target!" if check.is_below_target else "⏳ Still above your target."
    return (
        "🔎 <b>Price check</b>\n\n"
        f"💰 Current: <b>{html.escape(check.price_string)}</b> ({_format_price(check.current_price)})\n"
        f"🎯 Target: {_format_price(check.target_price)}\n\n"
        f"{verdict}"
    )


def _compose_item_line(item: TrackedItem) -> str:
    return (
        f"• <code>{html.escape(item.id)}</code> target {_format_price(item.target_price)}, "
        f"last {_format_price(item.last_price)}\n"
        f"    {html.escape(item.url)}"
    )


def _error_reply(exc: Exception) -> str:
    return f"❌ <b>Error:</b> {html.escape(str(exc))}"


@router.message(CommandStart())
async def cmd_start(message: Message) -> None:
    user_id = message.from_user.id if message.from_user else None
    logger.info("User %s started the bot", user_id)

    if user_id in settings.ADMIN_CHAT_IDS:
        await message.answer("✅ <b>Bot is running!</b>\n\n" + HELP_TEXT, parse_mode='HTML')
    else:
        await message.answer("👋 Hi! This bot is available to administrators only.", parse_mode='HTML')


@router.message(Command("help"), IsAdmin())
async def cmd_help(message: Message) -> None:
    await message.answer(
        HELP_TEXT + f"\n\n💡 Prices are checked every {settings.CHECK_INTERVAL_SECONDS} seconds.",
        parse_mode='HTML',
    )


@router.message(Command("check"), IsAdmin())
async def cmd_check(message: Message, command: CommandObject, monitor: PriceMonitor) -> None:
    """One-shot check that does not register the URL."""
    try:
        url, target = _parse_check_payload(command.args)
    except ValueError as exc:
        await message.answer(_error_reply(exc), parse_mode='HTML')
        return

    check = await monitor.check_once(url, target)
    await message.answer(_compose_check_reply(check), parse_mode='HTML', disable_web_page_preview=True)


@router.message(Command("track"), IsAdmin())
async def cmd_track(message: Message, command: CommandObject, monitor: PriceMonitor) -> None:
    try:
        url, target, item_id = _parse_track_payload(command.args)
        item = monitor.registry.track(item_id, url, target, owner_chat_id=message.chat.id)
    except DuplicateError as exc:
        await message.answer(
            f"⚠️ ID <code>{html.escape(exc.item_id)}</code> is already tracked.",
            parse_mode='HTML',
        )
        return
    except ValueError as exc:
        await message.answer(_error_reply(exc), parse_mode='HTML')
        return

    await message.answer(
        "👀 <b>Price tracking started</b>\n\n"
        f"ID: <code>{html.escape(item.id)}</code>\n"
        f"Target: {_format_price(item.target_price)}",
        parse_mode='HTML',
        disable_web_page_preview=True,
    )


@router.message(Command("untrack"), IsAdmin())
async def cmd_untrack(message: Message, command: CommandObject, monitor: PriceMonitor) -> None:
    item_id = (command.args or "").strip()
    if not item_id:
        await message.answer(_error_reply(ValueError("Usage: /untrack ID")), parse_mode='HTML')
        return

    monitor.registry.untrack(item_id)
    await message.answer("🛑 Price tracking stopped.", parse_mode='HTML')


@router.message(Command("list"), IsAdmin())
async def cmd_list(message: Message, monitor: PriceMonitor) -> None:
    items = monitor.registry.list()
    if not items:
        await message.answer("📭 Nothing is tracked yet. Use /track to add a page.", parse_mode='HTML')
        return

    lines = [f"📋 <b>Tracked items ({len(items)})</b>", ""]
    lines.extend(_compose_item_line(item) for item in items)
    await message.answer("\n".join(lines), parse_mode='HTML', disable_web_page_preview=True)


@router.message(Command("subscribe"), IsAdmin())
async def cmd_subscribe(message: Message, relay: ChatRelay) -> None:
    if relay.subscribe_chat(message.chat.id):
        await message.answer("🔔 This chat will now receive price alerts.", parse_mode='HTML')
    else:
        await message.answer("ℹ️ This chat is already subscribed.", parse_mode='HTML')


@router.message(Command("unsubscribe"), IsAdmin())
async def cmd_unsubscribe(message: Message, relay: ChatRelay) -> None:
    if relay.unsubscribe_chat(message.chat.id):
        await message.answer("🔕 Alerts disabled for this chat.", parse_mode='HTML')
    else:
        await message.answer("ℹ️ This chat was not subscribed.", parse_mode='HTML')


@router.message(Command("interval"), IsAdmin())
async def cmd_interval(message: Message, command: CommandObject) -> None:
    try:
        seconds = int((command.args or "").strip())
        update_check_interval(seconds)
    except ValueError:
        await message.answer(
            _error_reply(ValueError("Usage: /interval SECONDS (a positive integer)")),
            parse_mode='HTML',
        )
        return

    logger.info("Check interval changed to %s seconds", seconds)
    await message.answer(f"⏱ Prices will be checked every {seconds} seconds.", parse_mode='HTML')
