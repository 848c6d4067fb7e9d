from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .config import SubscriberDefaults, parse_pairs
from .errors import ConfigurationError

VALID_TIMEFRAMES = ("1m", "3m", "5m", "15m", "30m", "1h", "2h", "4h", "6h", "8h", "12h", "1d")


class Subscriber(BaseModel):
    """Alert preferences of a single chat."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    chat_id: str
    pairs: List[str] = Field(min_length=1)
    timeframe: str = Field(default="15m")
    timezone: str = Field(default="UTC")
    alert_frequency: int = Field(default=0, ge=0)

    @field_validator("chat_id", mode="before")
    @classmethod
    def _coerce_chat_id(cls, value: Any) -> str:
        text = str(value).strip()
        if not text:
            raise ValueError("chat_id must not be empty")
        return text

    @field_validator("pairs", mode="before")
    @classmethod
    def _normalize_pairs(cls, value: Any) -> List[str]:
        if isinstance(value, str):
            return parse_pairs(value)
        return [str(pair).strip().upper() for pair in value if str(pair).strip()]

    @field_validator("timeframe")
    @classmethod
    def _check_timeframe(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in VALID_TIMEFRAMES:
            raise ValueError(f"Invalid interval. Allowed: {', '.join(VALID_TIMEFRAMES)}")
        return normalized

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        name = value.strip()
        try:
            ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return name


class SubscriberStore:
    """File-backed subscriber preferences keyed by chat id.

    Every mutation is written to disk immediately. Records that fail
    validation on load are logged and skipped.
    """

    def __init__(
        self,
        path: Path,
        defaults: SubscriberDefaults | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._path = path
        self._defaults = defaults or SubscriberDefaults()
        self._log = logger or logging.getLogger(__name__)
        try:
            self._new_subscriber("defaults")
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid subscriber defaults: {exc}") from exc
        self._subscribers: Dict[str, Subscriber] = self._load()

    def list_subscribers(self) -> Dict[str, Subscriber]:
        return dict(self._subscribers)

    def get(self, chat_id: str | int) -> Subscriber | None:
        return self._subscribers.get(str(chat_id))

    def subscribe(self, chat_id: str | int) -> bool:
        """Register a chat with default preferences; returns False if it was already active."""
        if str(chat_id) in self._subscribers:
            return False
        self._put(self._new_subscriber(chat_id))
        return True

    def unsubscribe(self, chat_id: str | int) -> bool:
        removed = self._subscribers.pop(str(chat_id), None)
        if removed is None:
            return False
        self._save()
        return True

    def update_pairs(self, chat_id: str | int, raw: str) -> Subscriber:
        pairs = parse_pairs(raw.replace(" ", ""))
        if not pairs:
            raise ValueError("Invalid format. Use: BTC/USDT,ETH/USDT")
        return self._update(chat_id, pairs=pairs)

    def update_timeframe(self, chat_id: str | int, timeframe: str) -> Subscriber:
        return self._update(chat_id, timeframe=timeframe)

    def update_timezone(self, chat_id: str | int, timezone: str) -> Subscriber:
        return self._update(chat_id, timezone=timezone)

    def update_frequency(self, chat_id: str | int, minutes: int) -> Subscriber:
        return self._update(chat_id, alert_frequency=minutes)

    def _new_subscriber(self, chat_id: str | int) -> Subscriber:
        defaults = self._defaults
        return Subscriber(
            chat_id=chat_id,
            pairs=list(defaults.pairs),
            timeframe=defaults.timeframe,
            timezone=defaults.timezone,
            alert_frequency=defaults.alert_frequency,
        )

    def _update(self, chat_id: str | int, **changes: Any) -> Subscriber:
        current = self.get(chat_id) or self._new_subscriber(chat_id)
        # Re-validate through the constructor; model_copy would skip validators.
        updated = Subscriber(**{**current.model_dump(), **changes})
        self._put(updated)
        return updated

    def _put(self, subscriber: Subscriber) -> None:
        self._subscribers[subscriber.chat_id] = subscriber
        self._save()

    def _load(self) -> Dict[str, Subscriber]:
        path = self._path
        if not path.exists():
            return {}
        try:
            with path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except json.JSONDecodeError:
            self._log.warning("Subscriber file %s corrupted, ignoring contents.", path)
            return {}
        if not isinstance(payload, dict):
            self._log.warning("Subscriber file %s has unexpected layout, ignoring contents.", path)
            return {}

        subscribers: Dict[str, Subscriber] = {}
        for chat_id, record in payload.items():
            try:
                subscriber = Subscriber(chat_id=chat_id, **(record or {}))
            except (ValidationError, TypeError) as exc:
                self._log.warning("Skipping invalid subscriber %s: %s", chat_id, exc)
                continue
            subscribers[subscriber.chat_id] = subscriber
        self._log.info("Loaded %s subscriber(s) from %s", len(subscribers), path)
        return subscribers

    def _save(self) -> None:
        path = self._path
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            chat_id: subscriber.model_dump(exclude={"chat_id"})
            for chat_id, subscriber in self._subscribers.items()
        }
        with path.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2)
