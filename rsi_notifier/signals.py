from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import NamedTuple, Optional


class SignalState(str, Enum):
    """Market state derived from the current RSI reading."""

    NEUTRAL = "NEUTRAL"
    PRE_BUY = "PRE-BUY"
    BUY = "BUY"
    PRE_SELL = "PRE-SELL"
    SELL = "SELL"


class MarketKey(NamedTuple):
    symbol: str
    timeframe: str

    def __str__(self) -> str:
        return f"{self.symbol}|{self.timeframe}"


@dataclass(frozen=True)
class TimeEstimate:
    """Rough projection of when the RSI will reach ``target``; a hint, not a forecast."""

    minutes: int
    eta: datetime
    target: float


@dataclass(frozen=True)
class Snapshot:
    """Classified market state for one pair and timeframe at ``observed_at``."""

    symbol: str
    timeframe: str
    signal: SignalState
    price: float
    rsi: float
    observed_at: datetime
    estimate: Optional[TimeEstimate] = None

    @property
    def key(self) -> MarketKey:
        return MarketKey(self.symbol, self.timeframe)
