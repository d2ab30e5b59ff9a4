"""In-memory registry of tracked items."""
from __future__ import annotations

import logging
import threading
from dataclasses import replace
from decimal import Decimal, InvalidOperation

from models import CrossingDecision, TrackedItem
from services.errors import DuplicateError

logger = logging.getLogger(__name__)


def _to_decimal(value: Decimal | str | float | int) -> Decimal:
    try:
        return value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValueError(f"Invalid target price: {value!r}") from exc


class TrackingRegistry:
    """Thread-safe mapping of tracking id to :class:`TrackedItem`.

    Every read hands out a copy, so callers never observe an item while
    another caller is updating it.
    """

    def __init__(self) -> None:
        self._items: dict[str, TrackedItem] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        with self._lock:
            return item_id in self._items

    def track(
        self,
        item_id: str,
        url: str,
        target_price: Decimal | str | float | int,
        owner_chat_id: int | None = None,
    ) -> TrackedItem:
        normalized_id = (item_id or "").strip()
        normalized_url = (url or "").strip()
        if not normalized_id:
            raise ValueError("Tracking ID cannot be empty")
        if not normalized_url.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")

        target = _to_decimal(target_price)
        if not target.is_finite() or target <= 0:
            raise ValueError("Target price must be positive")

        with self._lock:
            if normalized_id in self._items:
                raise DuplicateError(normalized_id)
            item = TrackedItem(
                id=normalized_id,
                url=normalized_url,
                target_price=target,
                owner_chat_id=owner_chat_id,
            )
            self._items[normalized_id] = item
            snapshot = replace(item)

        logger.info("Tracking %s: %s (target %s)", normalized_id, normalized_url, target)
        return snapshot

    def untrack(self, item_id: str) -> bool:
        with self._lock:
            removed = self._items.pop(item_id, None)
        if removed is not None:
            logger.info("Stopped tracking %s", item_id)
        return removed is not None

    def untrack_owned_by(self, owner_chat_id: int) -> list[str]:
        """Drop every item bound to a push subscription."""
        with self._lock:
            removed = [
                item_id
                for item_id, item in self._items.items()
                if item.owner_chat_id == owner_chat_id
            ]
            for item_id in removed:
                del self._items[item_id]
        if removed:
            logger.info("Stopped tracking %s for subscription %s", ", ".join(removed), owner_chat_id)
        return removed

    def get(self, item_id: str) -> TrackedItem | None:
        with self._lock:
            item = self._items.get(item_id)
            return replace(item) if item is not None else None

    def list(self) -> list[TrackedItem]:
        with self._lock:
            return [replace(item) for item in self._items.values()]

    def record_observation(
        self,
        item_id: str,
        price: Decimal,
        strategy_id: str | None,
    ) -> CrossingDecision | None:
        """Store ``price`` for ``item_id`` and decide whether the target was hit.

        A crossing removes the item inside the same critical section, so the
        crossing is reported once. Returns ``None`` when the item was already
        removed; the observation is then discarded. A non-positive price is
        not an observation and leaves the item untouched.
        """
        with self._lock:
            item = self._items.get(item_id)
            if item is None:
                return None

            first = not item.has_observation
            if price <= 0:
                logger.warning("Ignoring non-positive price %s for %s", price, item_id)
                return CrossingDecision.FIRST_OBSERVATION if first else CrossingDecision.NO_CROSSING

            item.last_price = price
            if strategy_id:
                item.selector = strategy_id

            if price <= item.target_price:
                del self._items[item_id]
                return CrossingDecision.THRESHOLD_CROSSED

        return CrossingDecision.FIRST_OBSERVATION if first else CrossingDecision.NO_CROSSING


__all__ = ["TrackingRegistry"]
