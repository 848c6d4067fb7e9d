from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Sequence


def to_datetime(milliseconds: int) -> datetime:
    """Convert milliseconds since epoch to an aware UTC datetime."""
    return datetime.fromtimestamp(milliseconds / 1000, tz=timezone.utc)


@dataclass(frozen=True, slots=True)
class Candle:
    """Domain model representing a single OHLCV candle."""

    symbol: str
    interval: str
    open_time: datetime
    close_time: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float

    @classmethod
    def from_binance(cls, symbol: str, interval: str, payload: Sequence[str | int | float]) -> "Candle":
        """Build a candle instance from the Binance kline payload."""
        open_time_ms = int(payload[0])
        close_time_ms = int(payload[6])
        return cls(
            symbol=symbol,
            interval=interval,
            open_time=to_datetime(open_time_ms),
            close_time=to_datetime(close_time_ms),
            open=float(payload[1]),
            high=float(payload[2]),
            low=float(payload[3]),
            close=float(payload[4]),
            volume=float(payload[5]),
        )


def closing_prices(candles: Sequence[Candle]) -> List[float]:
    return [candle.close for candle in candles]


def normalize_symbol(symbol: str) -> str:
    """Turn ``btc/usdt`` style pairs into the Binance ``BTCUSDT`` form."""
    return symbol.upper().strip().replace("/", "")
