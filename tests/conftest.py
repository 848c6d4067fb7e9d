"""
Shared fixtures: candle factories and in-memory stand-ins for Binance and
Telegram so no test touches the network.
"""
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Sequence

import pytest

from candle_downloader.models import Candle

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _build_candles(closes: Sequence[float], symbol: str = "BTC/USDT", interval: str = "15m") -> List[Candle]:
    start = NOW - timedelta(minutes=15 * len(closes))
    candles = []
    for idx, close in enumerate(closes):
        open_time = start + timedelta(minutes=15 * idx)
        candles.append(
            Candle(
                symbol=symbol,
                interval=interval,
                open_time=open_time,
                close_time=open_time + timedelta(minutes=15) - timedelta(milliseconds=1),
                open=close,
                high=close,
                low=close,
                close=close,
                volume=1.0,
            )
        )
    return candles


class FakeProvider:
    """Serves canned candles per (symbol, timeframe) and counts calls."""

    def __init__(self, candles: Dict[tuple, Sequence[Candle]] | None = None) -> None:
        self.candles: Dict[tuple, Sequence[Candle]] = dict(candles or {})
        self.failures: Dict[tuple, Exception] = {}
        self.calls: List[tuple] = []

    def fetch_candles(self, symbol: str, timeframe: str) -> Sequence[Candle]:
        key = (symbol, timeframe)
        self.calls.append(key)
        if key in self.failures:
            raise self.failures[key]
        return self.candles.get(key, [])


class RecordingSender:
    def __init__(self, fail_for: Sequence[str] = ()) -> None:
        self.sent: List[tuple] = []
        self.fail_for = set(fail_for)

    def send_message(self, chat_id: str, text: str) -> None:
        from rsi_notifier.errors import DeliveryError

        if chat_id in self.fail_for:
            raise DeliveryError(f"chat {chat_id} blocked the bot")
        self.sent.append((chat_id, text))


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_candles() -> Callable[..., List[Candle]]:
    return _build_candles


@pytest.fixture
def falling_closes() -> List[float]:
    # Every close lower than the last: RSI 0, a BUY.
    return [100.0 - i for i in range(40)]


@pytest.fixture
def rising_closes() -> List[float]:
    # Every close higher than the last: RSI 100, a SELL.
    return [100.0 + i for i in range(40)]


@pytest.fixture
def choppy_closes() -> List[float]:
    # Alternating +1/-1 moves keep RSI near 50, NEUTRAL.
    return [100.0 + (i % 2) for i in range(40)]


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def failing_sender() -> RecordingSender:
    return RecordingSender(fail_for=["1"])
