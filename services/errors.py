"""Exceptions raised by the price tracking services."""
from __future__ import annotations


class PriceWatchError(Exception):
    """Base class for all recoverable tracking errors."""


class ParseError(PriceWatchError, ValueError):
    """Raised when a text fragment cannot be read as a price."""

    def __init__(self, raw: str, reason: str) -> None:
        super().__init__(f"could not parse {raw!r} as a price: {reason}")
        self.raw = raw
        self.reason = reason


class NotFoundError(PriceWatchError):
    """Raised when no extraction strategy produced a usable price."""


class FetchError(PriceWatchError):
    """Raised when a page could not be downloaded."""

    def __init__(self, url: str, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status = status


class DuplicateError(PriceWatchError):
    """Raised when a tracking id is already registered."""

    def __init__(self, item_id: str) -> None:
        super().__init__(f"item {item_id!r} is already tracked")
        self.item_id = item_id


class DeliveryPermanentFailure(PriceWatchError):
    """Raised when a push subscription is gone for good."""

    def __init__(self, subscription: int, message: str) -> None:
        super().__init__(message)
        self.subscription = subscription


__all__ = [
    "DeliveryPermanentFailure",
    "DuplicateError",
    "FetchError",
    "NotFoundError",
    "ParseError",
    "PriceWatchError",
]
