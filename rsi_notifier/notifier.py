from __future__ import annotations

import logging
import queue
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Set

from .alerts import AlertTracker, decide
from .commands import CommandHandler
from .config import SignalNotifierSettings
from .errors import DeliveryError
from .formatting import render_alert, render_status
from .signals import MarketKey, Snapshot
from .snapshots import SnapshotBuilder
from .subscribers import Subscriber, SubscriberStore

MAX_LONG_POLL_SECONDS = 30


class MessageSender(Protocol):
    def send_message(self, chat_id: str, text: str) -> None:
        ...


class UpdateSource(Protocol):
    def get_updates(self, offset: int | None = None, poll_timeout: int = 0) -> List[Dict[str, Any]]:
        ...


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def required_markets(subscribers: Dict[str, Subscriber]) -> Set[MarketKey]:
    """Every (pair, timeframe) some subscriber is watching."""
    return {
        MarketKey(pair, subscriber.timeframe)
        for subscriber in subscribers.values()
        for pair in subscriber.pairs
    }


class SignalNotifier:
    """Runs RSI alert cycles for every subscriber and answers chat commands in between."""

    def __init__(
        self,
        *,
        builder: SnapshotBuilder,
        store: SubscriberStore,
        sender: MessageSender,
        settings: SignalNotifierSettings,
        tracker: AlertTracker | None = None,
        updates: UpdateSource | None = None,
        clock: Callable[[], datetime] = _utc_now,
        logger: logging.Logger | None = None,
    ) -> None:
        self._builder = builder
        self._store = store
        self._sender = sender
        self._settings = settings
        self._tracker = tracker or AlertTracker()
        self._updates = updates
        self._clock = clock
        self._log = logger or logging.getLogger(__name__)

        self._status_requests: "queue.Queue[str]" = queue.Queue()
        self._commands = CommandHandler(
            store, self._status_requests, logger=self._log.getChild("commands")
        )
        self._update_offset: int | None = None

    @property
    def commands(self) -> CommandHandler:
        return self._commands

    def run(self) -> None:
        self._log.info(
            "RSI signal notifier started (%s subscriber(s), cycle every %.0fs)",
            len(self._store.list_subscribers()),
            self._settings.cycle_seconds,
        )
        next_cycle = time.monotonic()
        try:
            while True:
                remaining = next_cycle - time.monotonic()
                if remaining <= 0:
                    next_cycle = time.monotonic() + self._settings.cycle_seconds
                    try:
                        sent = self.run_cycle()
                    except Exception:  # pragma: no cover - defensive logging
                        self._log.exception("Signal cycle failed")
                    else:
                        if sent:
                            self._log.info("Dispatched %s alert(s) this cycle.", sent)
                    continue

                if self._updates is None or remaining < 1:
                    time.sleep(remaining)
                    continue
                self.poll_commands(int(min(remaining, MAX_LONG_POLL_SECONDS)))
        except KeyboardInterrupt:
            self._log.info("Signal notifier stopped by user.")

    # ------------------------------------------------------------------ #
    # Alert cycle
    # ------------------------------------------------------------------ #

    def run_cycle(self, now: Optional[datetime] = None) -> int:
        """Build snapshots for every watched pair and deliver due alerts; returns alerts sent."""
        now = now or self._clock()
        subscribers = self._store.list_subscribers()
        if not subscribers:
            return 0

        snapshots = self._builder.build(required_markets(subscribers), now)

        sent = 0
        for chat_id, subscriber in subscribers.items():
            try:
                sent += self._dispatch(subscriber, snapshots, now)
            except Exception:
                self._log.exception("Alert dispatch failed for %s", chat_id)
        return sent

    def _dispatch(self, subscriber: Subscriber, snapshots: Mapping[MarketKey, Snapshot], now: datetime) -> int:
        sent = 0
        for pair in subscriber.pairs:
            key = MarketKey(pair, subscriber.timeframe)
            snapshot = snapshots.get(key)
            if snapshot is None:
                continue
            notification = decide(subscriber, key, snapshot, self._tracker, now)
            if notification is None:
                continue
            if self._deliver(subscriber.chat_id, render_alert(notification)):
                sent += 1
        return sent

    def send_status(self, chat_id: str, now: Optional[datetime] = None) -> int:
        """Send the current signal of each of the chat's pairs; pairs without data are skipped."""
        subscriber = self._store.get(chat_id)
        if subscriber is None:
            self._deliver(chat_id, "Please /start first.")
            return 0

        now = now or self._clock()
        keys = [MarketKey(pair, subscriber.timeframe) for pair in subscriber.pairs]
        snapshots = self._builder.build(keys, now)
        sent = 0
        for key in keys:
            snapshot = snapshots.get(key)
            if snapshot is None:
                continue
            if self._deliver(subscriber.chat_id, render_status(snapshot, subscriber.timezone)):
                sent += 1
        return sent

    # ------------------------------------------------------------------ #
    # Chat commands
    # ------------------------------------------------------------------ #

    def poll_commands(self, poll_timeout: int = 0) -> None:
        if self._updates is None:
            return
        try:
            updates = self._updates.get_updates(self._update_offset, poll_timeout)
        except DeliveryError as exc:
            self._log.warning("Polling error: %s", exc)
            time.sleep(min(max(poll_timeout, 1), 5))
            return

        for update in updates:
            self.handle_update(update)
        self.serve_status_requests()

    def handle_update(self, update: Dict[str, Any]) -> None:
        update_id = update.get("update_id")
        if isinstance(update_id, int):
            self._update_offset = update_id + 1
        message = update.get("message") or {}
        chat_id = (message.get("chat") or {}).get("id")
        text = message.get("text")
        if chat_id is None or not text:
            return
        reply = self._commands.handle(chat_id, text)
        if reply:
            self._deliver(str(chat_id), reply)

    def serve_status_requests(self) -> None:
        while True:
            try:
                chat_id = self._status_requests.get_nowait()
            except queue.Empty:
                return
            self.send_status(chat_id)

    # ------------------------------------------------------------------ #
    # Messaging
    # ------------------------------------------------------------------ #

    def _deliver(self, chat_id: str, text: str) -> bool:
        if self._settings.dry_run:
            self._log.info("DRY RUN - Would send to %s:\n%s", chat_id, text)
            return True
        try:
            self._sender.send_message(chat_id, text)
        except DeliveryError as exc:
            self._log.error("Failed to send to %s: %s", chat_id, exc)
            return False
        except Exception:
            self._log.exception("Unexpected error sending to %s", chat_id)
            return False
        return True
