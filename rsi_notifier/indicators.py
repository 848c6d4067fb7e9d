from __future__ import annotations

from typing import List, Optional, Sequence

from candle_downloader.models import Candle, closing_prices


def rsi(values: Sequence[float], period: int) -> List[Optional[float]]:
    """Wilder RSI aligned index-for-index with ``values``; warmup slots are ``None``."""
    if period <= 0:
        raise ValueError("period must be positive")

    result: List[Optional[float]] = [None] * len(values)
    if len(values) < period + 1:
        return result

    gains: List[float] = [0.0] * len(values)
    losses: List[float] = [0.0] * len(values)

    # First differences
    for i in range(1, len(values)):
        change = values[i] - values[i - 1]
        if change > 0:
            gains[i] = change
        else:
            losses[i] = -change

    avg_gain = sum(gains[1 : period + 1]) / period
    avg_loss = sum(losses[1 : period + 1]) / period
    result[period] = _to_rsi(avg_gain, avg_loss)

    # Wilder's smoothing
    for i in range(period + 1, len(values)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period
        result[i] = _to_rsi(avg_gain, avg_loss)

    return result


def calculate_rsi(candles: Sequence[Candle], period: int = 14) -> List[float]:
    """Return the RSI series for ``candles`` without warmup slots.

    The series has ``len(candles) - period`` values (empty when there are not
    enough candles) and its last element belongs to the newest candle.
    """
    return [value for value in rsi(closing_prices(candles), period) if value is not None]


def _to_rsi(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - (100.0 / (1.0 + rs))
