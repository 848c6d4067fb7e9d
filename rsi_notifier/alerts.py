from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, Tuple

from .signals import MarketKey, SignalState, Snapshot, TimeEstimate
from .subscribers import Subscriber

log = logging.getLogger(__name__)

TrackingKey = Tuple[str, str, str]


@dataclass(slots=True)
class AlertTrackingEntry:
    last_signal: SignalState | None = None
    last_alert_at: datetime | None = None


@dataclass(frozen=True)
class Notification:
    """An alert that was decided for one subscriber and pair."""

    chat_id: str
    key: MarketKey
    snapshot: Snapshot
    timezone: str
    estimate: Optional[TimeEstimate] = None


class AlertTracker:
    """In-memory alert state per (chat, symbol, timeframe).

    Only ``decide`` mutates entries. Nothing is persisted, so a restart
    forgets which signals were already announced.
    """

    def __init__(self) -> None:
        self._entries: Dict[TrackingKey, AlertTrackingEntry] = {}

    @staticmethod
    def key_for(chat_id: str, key: MarketKey) -> TrackingKey:
        return (str(chat_id), key.symbol, key.timeframe)

    def get(self, chat_id: str, key: MarketKey) -> AlertTrackingEntry | None:
        return self._entries.get(self.key_for(chat_id, key))

    def ensure(self, chat_id: str, key: MarketKey) -> AlertTrackingEntry:
        tracking_key = self.key_for(chat_id, key)
        entry = self._entries.get(tracking_key)
        if entry is None:
            entry = AlertTrackingEntry()
            self._entries[tracking_key] = entry
        return entry

    def mark_neutral(self, chat_id: str, key: MarketKey) -> None:
        self.ensure(chat_id, key).last_signal = SignalState.NEUTRAL

    def record_alert(self, chat_id: str, key: MarketKey, signal: SignalState, now: datetime) -> None:
        entry = self.ensure(chat_id, key)
        entry.last_signal = signal
        if entry.last_alert_at is None or now > entry.last_alert_at:
            entry.last_alert_at = now


def _repeat_due(entry: AlertTrackingEntry, frequency_minutes: int, now: datetime) -> bool:
    if frequency_minutes <= 0:
        return False
    if entry.last_alert_at is None:
        return True
    # Compared in seconds; timedelta() overflows for very large frequencies.
    return (now - entry.last_alert_at).total_seconds() >= frequency_minutes * 60


def decide(
    subscriber: Subscriber,
    key: MarketKey,
    snapshot: Snapshot,
    tracker: AlertTracker,
    now: datetime,
) -> Optional[Notification]:
    """Decide whether ``subscriber`` should be alerted about ``snapshot`` now.

    A NEUTRAL reading never alerts and resets the entry, so the next
    non-neutral signal counts as a transition. A changed signal always alerts.
    An unchanged signal alerts again only when the subscriber asked for
    repeats (``alert_frequency > 0``) and that many minutes have passed since
    the last alert. The entry is committed as sent before delivery is
    attempted.
    """
    chat_id = subscriber.chat_id
    if snapshot.signal is SignalState.NEUTRAL:
        tracker.mark_neutral(chat_id, key)
        return None

    entry = tracker.ensure(chat_id, key)
    changed = entry.last_signal is not snapshot.signal
    if not changed and not _repeat_due(entry, subscriber.alert_frequency, now):
        return None

    log.debug(
        "Alert for %s on %s (%s)",
        chat_id,
        key,
        "signal changed" if changed else "repeat interval elapsed",
    )
    tracker.record_alert(chat_id, key, snapshot.signal, now)
    return Notification(
        chat_id=chat_id,
        key=key,
        snapshot=snapshot,
        timezone=subscriber.timezone,
        estimate=snapshot.estimate,
    )
