"""Fan-out of price alerts to live subscribers."""
from __future__ import annotations

import asyncio
import itertools
import logging
import threading
from typing import AsyncIterator

from config import settings
from models import Alert

logger = logging.getLogger(__name__)

_CLOSED = object()
_subscriber_ids = itertools.count(1)


class Subscriber:
    """One live notification channel backed by a bounded queue."""

    def __init__(self, maxsize: int) -> None:
        self.id = next(_subscriber_ids)
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    def __repr__(self) -> str:
        return f"Subscriber(id={self.id}, pending={self.queue.qsize()}, closed={self.closed})"

    def offer(self, alert: Alert) -> bool:
        if self.closed:
            return False
        try:
            self.queue.put_nowait(alert)
        except asyncio.QueueFull:
            return False
        return True

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        # pending alerts are dropped; the reader only needs the end marker
        while not self.queue.empty():
            self.queue.get_nowait()
        self.queue.put_nowait(_CLOSED)

    async def get(self) -> Alert | None:
        """Wait for the next alert; ``None`` once the subscriber is closed."""
        if self.closed and self.queue.empty():
            return None
        value = await self.queue.get()
        if value is _CLOSED:
            return None
        return value

    async def __aiter__(self) -> AsyncIterator[Alert]:
        while True:
            alert = await self.get()
            if alert is None:
                return
            yield alert


class AlertBroadcaster:
    """Delivers each alert to every subscriber connected at publish time."""

    def __init__(self, queue_size: int | None = None) -> None:
        self._queue_size = queue_size
        self._subscribers: dict[int, Subscriber] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self, maxsize: int | None = None) -> Subscriber:
        size = maxsize or self._queue_size or settings.SUBSCRIBER_QUEUE_SIZE
        subscriber = Subscriber(size)
        with self._lock:
            self._subscribers[subscriber.id] = subscriber
            total = len(self._subscribers)
        logger.info("Subscriber %s connected (%d total)", subscriber.id, total)
        return subscriber

    def unsubscribe(self, subscriber: Subscriber) -> None:
        with self._lock:
            removed = self._subscribers.pop(subscriber.id, None)
        subscriber.close()
        if removed is not None:
            logger.info("Subscriber %s disconnected", subscriber.id)

    def publish(self, alert: Alert) -> int:
        """Enqueue ``alert`` for all subscribers without ever blocking.

        A subscriber whose queue is full is considered dead: it is closed and
        removed, and delivery to the others carries on.
        """
        with self._lock:
            subscribers = list(self._subscribers.values())

        logger.info("Sending alert %s to %d connected subscribers", alert.item_id, len(subscribers))
        delivered = 0
        for subscriber in subscribers:
            if subscriber.offer(alert):
                delivered += 1
                continue
            logger.warning("Subscriber %s queue full, closing connection", subscriber.id)
            self.unsubscribe(subscriber)
        return delivered


__all__ = ["AlertBroadcaster", "Subscriber"]
