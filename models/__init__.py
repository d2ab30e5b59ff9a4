"""Models package initialization"""
from .alert import Alert
from .price import CrossingDecision, ExtractionResult, PriceCheck
from .tracked_item import TrackedItem

__all__ = ['Alert', 'CrossingDecision', 'ExtractionResult', 'PriceCheck', 'TrackedItem']
