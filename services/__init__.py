"""Services package initialization"""
from .alerts import AdminAlertHandler
from .broadcaster import AlertBroadcaster, Subscriber
from .extraction import SelectorEngine
from .fetcher import PageFetcher
from .monitor import PriceMonitor
from .push import PushNotifier
from .registry import TrackingRegistry
from .relay import ChatRelay

__all__ = [
    "AdminAlertHandler",
    "AlertBroadcaster",
    "ChatRelay",
    "PageFetcher",
    "PriceMonitor",
    "PushNotifier",
    "SelectorEngine",
    "Subscriber",
    "TrackingRegistry",
]
