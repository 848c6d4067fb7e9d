"""Plain-text chat commands that manage subscriber preferences."""

from __future__ import annotations

import logging
import queue
from typing import Callable, Dict, Optional

from pydantic import ValidationError

from .formatting import render_settings
from .subscribers import VALID_TIMEFRAMES, SubscriberStore

HELP_TEXT = (
    "🛠 *Bot Commands*:\n"
    "/start - subscribe with default settings\n"
    "/status - current price, RSI and signal for your pairs\n"
    "/mysettings - show your settings\n"
    "/pairs BTC/USDT,ETH/USDT - set pairs\n"
    f"/interval 15m - set interval ({', '.join(VALID_TIMEFRAMES)})\n"
    "/timezone Asia/Dhaka - set timezone\n"
    "/frequency 15 - repeat alerts every N minutes (0 = only on change)\n"
    "/stop - stop receiving signals"
)
NOT_SUBSCRIBED = "Please /start first."


def _error_text(exc: ValueError) -> str:
    if isinstance(exc, ValidationError):
        errors = exc.errors()
        if errors:
            return str(errors[0].get("msg", exc)).removeprefix("Value error, ")
    return str(exc)


class CommandHandler:
    """Turns incoming chat text into store updates and reply text.

    ``/status`` is not answered here; the chat id is put on
    ``status_requests`` and the notifier loop serves it.
    """

    def __init__(
        self,
        store: SubscriberStore,
        status_requests: "queue.Queue[str]",
        logger: logging.Logger | None = None,
    ) -> None:
        self._store = store
        self._status_requests = status_requests
        self._log = logger or logging.getLogger(__name__)
        self._handlers: Dict[str, Callable[[str, str], Optional[str]]] = {
            "/start": self._start,
            "/stop": self._stop,
            "/status": self._status,
            "/mysettings": self._settings,
            "/settings": self._settings,
            "/help": self._help,
            "/pairs": self._pairs,
            "/interval": self._interval,
            "/timezone": self._timezone,
            "/frequency": self._frequency,
        }

    def handle(self, chat_id: str | int, text: str) -> Optional[str]:
        """Return the reply for ``text``, or None when nothing should be sent back."""
        text = (text or "").strip()
        if not text.startswith("/"):
            return None
        command, _, argument = text.partition(" ")
        command = command.split("@", 1)[0].lower()
        handler = self._handlers.get(command)
        if handler is None:
            return None
        self._log.debug("Handling %s from %s", command, chat_id)
        return handler(str(chat_id), argument.strip())

    def _start(self, chat_id: str, _: str) -> str:
        if self._store.subscribe(chat_id):
            self._log.info("New subscriber %s", chat_id)
            return "✅ *Welcome!*\n\nYou are now subscribed. Send /help to see the commands."
        return "You are already active."

    def _stop(self, chat_id: str, _: str) -> Optional[str]:
        if not self._store.unsubscribe(chat_id):
            return None
        self._log.info("Subscriber %s stopped", chat_id)
        return "❌ *Stopped.* You will no longer receive alerts."

    def _status(self, chat_id: str, _: str) -> Optional[str]:
        if self._store.get(chat_id) is None:
            return NOT_SUBSCRIBED
        self._status_requests.put(chat_id)
        return None

    def _settings(self, chat_id: str, _: str) -> str:
        subscriber = self._store.get(chat_id)
        if subscriber is None:
            return NOT_SUBSCRIBED
        return render_settings(subscriber)

    def _help(self, chat_id: str, _: str) -> str:
        return HELP_TEXT

    def _pairs(self, chat_id: str, argument: str) -> str:
        if not argument:
            return "📝 Usage: `/pairs BTC/USDT,ETH/USDT`"
        try:
            subscriber = self._store.update_pairs(chat_id, argument)
        except ValueError as exc:
            return f"❌ {_error_text(exc)}"
        return f"✅ Pairs updated to: *{', '.join(subscriber.pairs)}*"

    def _interval(self, chat_id: str, argument: str) -> str:
        if not argument:
            return f"📝 Usage: `/interval 15m`\nOptions: `{', '.join(VALID_TIMEFRAMES)}`"
        try:
            subscriber = self._store.update_timeframe(chat_id, argument)
        except ValueError as exc:
            return f"❌ {_error_text(exc)}"
        return f"✅ Interval updated to: *{subscriber.timeframe}*"

    def _timezone(self, chat_id: str, argument: str) -> str:
        if not argument:
            return "📝 Usage: `/timezone Asia/Dhaka`"
        try:
            subscriber = self._store.update_timezone(chat_id, argument)
        except ValueError:
            return "❌ Invalid Timezone. Example: `Asia/Dhaka`, `America/New_York`, `UTC`"
        return f"✅ Timezone updated to: *{subscriber.timezone}*"

    def _frequency(self, chat_id: str, argument: str) -> str:
        try:
            minutes = int(argument)
        except ValueError:
            return "❌ Invalid number."
        if minutes < 0:
            return "❌ Invalid number."
        self._store.update_frequency(chat_id, minutes)
        if minutes == 0:
            return "✅ Alerts set to *Once per signal* (only when signal changes)."
        return f"✅ Alerts will repeat every *{minutes} minutes* while signal persists."
