"""RSI signal notifier package."""

from .alerts import AlertTracker, AlertTrackingEntry, Notification, decide
from .classifier import classify, estimate_time_to_target
from .config import RsiStrategyConfig, RsiThresholds, SignalNotifierSettings, SubscriberDefaults
from .errors import ConfigurationError, DataUnavailableError, DeliveryError
from .notifier import SignalNotifier
from .signals import MarketKey, SignalState, Snapshot, TimeEstimate
from .snapshots import SnapshotBuilder
from .subscribers import Subscriber, SubscriberStore
from .telegram_client import TelegramClient, TelegramConfig

__all__ = [
    "AlertTracker",
    "AlertTrackingEntry",
    "ConfigurationError",
    "DataUnavailableError",
    "DeliveryError",
    "MarketKey",
    "Notification",
    "RsiStrategyConfig",
    "RsiThresholds",
    "SignalNotifier",
    "SignalNotifierSettings",
    "SignalState",
    "Snapshot",
    "SnapshotBuilder",
    "Subscriber",
    "SubscriberDefaults",
    "SubscriberStore",
    "TelegramClient",
    "TelegramConfig",
    "TimeEstimate",
    "classify",
    "decide",
    "estimate_time_to_target",
]
