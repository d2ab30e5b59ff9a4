"""Data model for a URL tracked against a target price."""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(slots=True)
class TrackedItem:
    """Represents a product page watched until its price reaches the target."""

    id: str
    url: str
    target_price: Decimal
    selector: str | None = None
    last_price: Decimal = Decimal("0")
    owner_chat_id: int | None = None

    @property
    def has_observation(self) -> bool:
        return self.last_price > 0
