import asyncio
import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from bot import router
from config import settings
from services import (
    AdminAlertHandler,
    AlertBroadcaster,
    ChatRelay,
    PageFetcher,
    PriceMonitor,
    PushNotifier,
    TrackingRegistry,
)
from services.runtime import configure_scheduler

# ensure logs are recorded both to stdout and to a rotating file
def configure_logging() -> None:
    log_dir = Path(os.getenv("LOG_DIR", "logs"))
    if not log_dir.is_absolute():
        log_dir = Path.cwd() / log_dir
    log_dir.mkdir(parents=True, exist_ok=True)

    log_file = log_dir / "pricewatch.log"

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        handlers=[
            logging.StreamHandler(),
            RotatingFileHandler(
                log_file,
                maxBytes=5 * 1024 * 1024,
                backupCount=3,
                encoding="utf-8",
            ),
        ],
        force=True,
    )


configure_logging()
logger = logging.getLogger("pricewatch")


async def main() -> None:
    settings.validate()

    bot = Bot(
        token=settings.BOT_TOKEN,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )
    logging.getLogger().addHandler(
        AdminAlertHandler(bot, settings.ADMIN_CHAT_IDS, loop=asyncio.get_running_loop())
    )

    registry = TrackingRegistry()
    broadcaster = AlertBroadcaster()
    monitor = PriceMonitor(
        registry,
        broadcaster,
        fetcher=PageFetcher(),
        notifier=PushNotifier(bot),
        bot=bot,
    )
    relay = ChatRelay(bot, broadcaster)

    dispatcher = Dispatcher(monitor=monitor, relay=relay)
    dispatcher.include_router(router)

    scheduler = AsyncIOScheduler()
    poll_job = scheduler.add_job(
        monitor.check_prices,
        "interval",
        seconds=settings.CHECK_INTERVAL_SECONDS,
        coalesce=True,
        max_instances=1,
    )
    configure_scheduler(scheduler, poll_job)
    scheduler.start()

    logger.info("Bot started. Checking tracked prices every %s seconds", settings.CHECK_INTERVAL_SECONDS)

    try:
        await dispatcher.start_polling(bot)
    finally:
        scheduler.shutdown(wait=False)
        await relay.close()
        await monitor.close()
        await bot.session.close()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Bot stopped by user")
    except Exception:
        logger.exception("Fatal error")
