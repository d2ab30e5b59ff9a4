"""Alert emitted when a tracked price reaches its target."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from .price import ExtractionResult
from .tracked_item import TrackedItem


@dataclass(frozen=True, slots=True)
class Alert:
    item_id: str
    url: str
    current_price: Decimal
    target_price: Decimal
    display_price: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_extraction(cls, item: TrackedItem, result: ExtractionResult) -> "Alert":
        return cls(
            item_id=item.id,
            url=item.url,
            current_price=result.price,
            target_price=item.target_price,
            display_price=result.display_text,
        )

    def to_dict(self) -> dict[str, Any]:
        """Flat record handed to realtime transports."""
        return {
            "id": self.item_id,
            "url": self.url,
            "currentPrice": float(self.current_price),
            "targetPrice": float(self.target_price),
            "priceString": self.display_price,
            "timestamp": self.timestamp.isoformat(timespec="seconds"),
        }
