"""Monitoring service that polls tracked prices and raises alerts."""
from __future__ import annotations

import asyncio
import logging
import time
from decimal import Decimal, InvalidOperation

from aiogram import Bot

from config import settings
from models import Alert, CrossingDecision, ExtractionResult, PriceCheck, TrackedItem
from services.alerts import send_critical_alert
from services.broadcaster import AlertBroadcaster
from services.errors import DeliveryPermanentFailure, FetchError, NotFoundError
from services.extraction import SelectorEngine
from services.fetcher import PageFetcher
from services.push import PushNotifier
from services.registry import TrackingRegistry

logger = logging.getLogger(__name__)


class PriceMonitor:
    """Drives one independent price check per tracked item on every tick."""

    def __init__(
        self,
        registry: TrackingRegistry,
        broadcaster: AlertBroadcaster,
        fetcher: PageFetcher | None = None,
        engine: SelectorEngine | None = None,
        notifier: PushNotifier | None = None,
        bot: Bot | None = None,
    ) -> None:
        self.registry = registry
        self.broadcaster = broadcaster
        self.fetcher = fetcher or PageFetcher()
        self.engine = engine or SelectorEngine()
        self.notifier = notifier
        self.bot = bot
        self._tasks: set[asyncio.Task] = set()
        self._in_flight: set[str] = set()
        self._failures: dict[str, int] = {}

    @property
    def in_flight(self) -> frozenset[str]:
        return frozenset(self._in_flight)

    async def check_prices(self) -> None:
        """Start a check for every tracked item without waiting for them."""
        items = self.registry.list()
        logger.info("Starting price check for %d tracked items", len(items))
        tracked_ids = {item.id for item in items}
        self._failures = {item_id: count for item_id, count in self._failures.items() if item_id in tracked_ids}

        for item in items:
            if item.id in self._in_flight:
                logger.info("Previous check for %s still running, skipping this tick", item.id)
                continue
            self._in_flight.add(item.id)
            task = asyncio.create_task(self._run_check(item), name=f"price-check:{item.id}")
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _run_check(self, item: TrackedItem) -> None:
        try:
            await self.check_item(item)
        except asyncio.CancelledError:
            logger.info("Price check cancelled for %s", item.id)
            raise
        except Exception:
            logger.exception("Unexpected error checking %s (%s)", item.id, item.url)
        finally:
            self._in_flight.discard(item.id)

    async def check_item(self, item: TrackedItem) -> CrossingDecision | None:
        """Run one check for ``item``; returns ``None`` when nothing was recorded."""
        logger.info("Checking price for item %s: %s (target: %s)", item.id, item.url, item.target_price)

        result = await self._fetch_price(item.url, item.selector, item.id)
        if result is None:
            await self._track_failure(item)
            return None
        self._failures.pop(item.id, None)

        if item.selector and result.strategy_id != item.selector:
            logger.info("Selector for %s changed from '%s' to '%s'", item.id, item.selector, result.strategy_id)

        decision = self.registry.record_observation(item.id, result.price, result.strategy_id)
        if decision is None:
            logger.info("Item %s was untracked during its check; result discarded", item.id)
            return None

        if decision is CrossingDecision.THRESHOLD_CROSSED:
            logger.info(
                "Price target reached for %s! Current: %s, Target: %s",
                item.id, result.price, item.target_price,
            )
            await self._announce(Alert.from_extraction(item, result), item.owner_chat_id)
        else:
            logger.info(
                "Price not yet at target for %s. Current: %s, Target: %s",
                item.id, result.price, item.target_price,
            )
        return decision

    async def check_once(self, url: str, target_price) -> PriceCheck:
        """Check ``url`` a single time without registering it."""
        try:
            target = Decimal(str(target_price))
        except InvalidOperation:
            target = Decimal("0")
        if not url or not url.startswith(("http://", "https://")) or not target.is_finite() or target <= 0:
            return PriceCheck(success=False, message="Invalid URL or target price")

        try:
            html = await self.fetcher.get_page_content(url)
            result = self.engine.extract(html)
        except FetchError as exc:
            return PriceCheck(success=False, message=f"Unable to fetch price: {exc}")
        except NotFoundError as exc:
            return PriceCheck(success=False, message=f"Price not found: {exc}")
        if result.price <= 0:
            return PriceCheck(success=False, message=f"Price not found: placeholder price {result.display_text!r}")

        is_below = result.price <= target
        if is_below:
            alert = Alert(
                item_id=f"check-{int(time.time())}",
                url=url,
                current_price=result.price,
                target_price=target,
                display_price=result.display_text,
            )
            self.broadcaster.publish(alert)
            logger.info("Immediate price alert sent for %s: %s (target: %s)", url, result.display_text, target)

        return PriceCheck(
            success=True,
            message="Price check successful",
            current_price=result.price,
            target_price=target,
            is_below_target=is_below,
            price_string=result.display_text,
        )

    async def _fetch_price(self, url: str, cached_strategy: str | None, item_id: str) -> ExtractionResult | None:
        try:
            html = await self.fetcher.get_page_content(url)
        except FetchError as exc:
            logger.warning("Error checking price for %s: %s", item_id, exc)
            return None

        try:
            result = self.engine.locate_price(html, cached_strategy)
        except NotFoundError as exc:
            logger.warning("No price found for %s at %s: %s", item_id, url, exc)
            return None

        if result.price <= 0:
            logger.warning("Placeholder price %r for %s at %s", result.display_text, item_id, url)
            return None
        return result

    async def _announce(self, alert: Alert, owner_chat_id: int | None) -> None:
        self.broadcaster.publish(alert)

        if self.notifier is None or owner_chat_id is None:
            return
        try:
            await self.notifier.deliver(alert, owner_chat_id)
        except DeliveryPermanentFailure as exc:
            removed = self.registry.untrack_owned_by(exc.subscription)
            logger.warning(
                "Subscription %s is gone; stopped %d dependent trackers",
                exc.subscription, len(removed),
            )

    async def _track_failure(self, item: TrackedItem) -> None:
        count = self._failures.get(item.id, 0) + 1
        self._failures[item.id] = count
        if count != settings.FAILURE_ALERT_THRESHOLD or self.bot is None:
            return
        message = (
            f"Price check for <b>{item.id}</b> failed {count} times in a row.\n\n"
            f"URL: {item.url}\n"
            f"The page may have changed its markup or blocked requests."
        )
        await send_critical_alert(self.bot, settings.ADMIN_CHAT_IDS, message)

    async def wait_idle(self) -> None:
        """Wait until every check started so far has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
        await self.fetcher.close()


__all__ = ["PriceMonitor"]
