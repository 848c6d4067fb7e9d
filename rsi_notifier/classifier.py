from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from typing import Dict, Optional, Set, Tuple

from .config import DEFAULT_POINTS_PER_CANDLE, RsiThresholds
from .signals import SignalState, TimeEstimate

log = logging.getLogger(__name__)

TIMEFRAME_MINUTES: Dict[str, int] = {
    "1m": 1,
    "3m": 3,
    "5m": 5,
    "15m": 15,
    "30m": 30,
    "1h": 60,
    "2h": 120,
    "4h": 240,
    "1d": 1440,
}
# Used for any timeframe missing from TIMEFRAME_MINUTES (e.g. "6h").
DEFAULT_TIMEFRAME_MINUTES = 15
_warned_timeframes: Set[str] = set()


def timeframe_to_minutes(timeframe: str) -> int:
    minutes = TIMEFRAME_MINUTES.get(timeframe.strip())
    if minutes is None:
        if timeframe not in _warned_timeframes:
            _warned_timeframes.add(timeframe)
            log.warning(
                "Unknown timeframe %r for entry estimate, assuming %s minutes per candle",
                timeframe,
                DEFAULT_TIMEFRAME_MINUTES,
            )
        return DEFAULT_TIMEFRAME_MINUTES
    return minutes


def estimate_time_to_target(
    current: float,
    target: float,
    timeframe: str,
    now: datetime,
    points_per_candle: float = DEFAULT_POINTS_PER_CANDLE,
) -> TimeEstimate:
    """Linear projection of when the RSI reaches ``target``.

    Assumes the RSI moves ``points_per_candle`` points per candle towards the
    target. This is a crude heuristic meant as a hint for the reader of an
    alert, not a forecast.
    """
    if points_per_candle <= 0:
        raise ValueError("points_per_candle must be positive")
    distance = abs(current - target)
    candles_needed = math.ceil(distance / points_per_candle)
    minutes = candles_needed * timeframe_to_minutes(timeframe)
    return TimeEstimate(minutes=minutes, eta=now + timedelta(minutes=minutes), target=target)


def classify(
    reading: float,
    thresholds: RsiThresholds,
    timeframe: str,
    now: datetime,
    points_per_candle: float = DEFAULT_POINTS_PER_CANDLE,
) -> Tuple[SignalState, Optional[TimeEstimate]]:
    """Map an RSI reading to a signal, with an entry estimate for the warning bands.

    Checks run in order and the first match wins: below ``oversold`` is BUY,
    above ``overbought`` is SELL, at or below ``warning_buy`` is PRE-BUY
    (estimated towards ``oversold``), at or above ``warning_sell`` is PRE-SELL
    (estimated towards ``overbought``), anything else is NEUTRAL.
    """
    if reading < thresholds.oversold:
        return SignalState.BUY, None
    if reading > thresholds.overbought:
        return SignalState.SELL, None
    if reading <= thresholds.warning_buy:
        estimate = estimate_time_to_target(
            reading, thresholds.oversold, timeframe, now, points_per_candle
        )
        return SignalState.PRE_BUY, estimate
    if reading >= thresholds.warning_sell:
        estimate = estimate_time_to_target(
            reading, thresholds.overbought, timeframe, now, points_per_candle
        )
        return SignalState.PRE_SELL, estimate
    return SignalState.NEUTRAL, None
