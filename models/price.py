"""Value objects produced while extracting and evaluating prices."""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class CrossingDecision(Enum):
    """Outcome of recording one observed price for a tracked item."""

    FIRST_OBSERVATION = "first_observation"
    NO_CROSSING = "no_crossing"
    THRESHOLD_CROSSED = "threshold_crossed"


@dataclass(frozen=True, slots=True)
class ExtractionResult:
    price: Decimal
    display_text: str
    strategy_id: str


@dataclass(frozen=True, slots=True)
class PriceCheck:
    """Answer to a one-shot price check."""

    success: bool
    message: str
    current_price: Decimal | None = None
    target_price: Decimal | None = None
    is_below_target: bool = False
    price_string: str = ""
