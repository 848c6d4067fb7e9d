from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Tuple

from .errors import ConfigurationError

DEFAULT_PAIRS: Tuple[str, ...] = ("BTC/USDT", "ETH/USDT")
DEFAULT_POINTS_PER_CANDLE = 2.5


@dataclass(frozen=True)
class RsiThresholds:
    """RSI levels used by the classifier.

    Extremes are compared strictly (``< oversold`` is BUY, ``> overbought`` is
    SELL) while warning levels are inclusive, so a reading exactly at
    ``oversold`` is PRE-BUY and one exactly at ``overbought`` is PRE-SELL.
    """

    oversold: float = 30.0
    overbought: float = 70.0
    warning_buy: float = 40.0
    warning_sell: float = 60.0

    def __post_init__(self) -> None:
        if not (self.oversold < self.warning_buy <= self.warning_sell < self.overbought):
            raise ConfigurationError(
                "RSI thresholds must satisfy oversold < warning_buy <= warning_sell < overbought "
                f"(got {self.oversold}, {self.warning_buy}, {self.warning_sell}, {self.overbought})"
            )


@dataclass(frozen=True)
class RsiStrategyConfig:
    rsi_period: int = 14
    thresholds: RsiThresholds = field(default_factory=RsiThresholds)
    points_per_candle: float = DEFAULT_POINTS_PER_CANDLE

    def __post_init__(self) -> None:
        if self.rsi_period < 2:
            raise ConfigurationError("rsi_period must be at least 2")
        if self.points_per_candle <= 0:
            raise ConfigurationError("points_per_candle must be positive")


@dataclass(frozen=True)
class SubscriberDefaults:
    """Preferences given to a chat when it subscribes."""

    pairs: Tuple[str, ...] = DEFAULT_PAIRS
    timeframe: str = "15m"
    timezone: str = "UTC"
    alert_frequency: int = 0

    def __post_init__(self) -> None:
        if not self.pairs:
            raise ConfigurationError("At least one default pair is required")
        if self.alert_frequency < 0:
            raise ConfigurationError("alert_frequency cannot be negative")


@dataclass(frozen=True)
class SignalNotifierSettings:
    cycle_seconds: float = 60.0
    max_workers: int = 8
    user_data_file: Path = Path("./data/user_data.json")
    dry_run: bool = False

    def __post_init__(self) -> None:
        if self.cycle_seconds <= 0:
            raise ConfigurationError("cycle_seconds must be positive")
        if self.max_workers < 1:
            raise ConfigurationError("max_workers must be at least 1")


def parse_pairs(value: str) -> List[str]:
    """Split ``btc/usdt, eth/usdt`` into ``["BTC/USDT", "ETH/USDT"]``."""
    return [token.strip().upper() for token in value.split(",") if token.strip()]


def load_env_config() -> Dict[str, str]:
    env = os.getenv
    return {
        "telegram_token": env("TELEGRAM_BOT_TOKEN", ""),
        "telegram_proxy": env("TELEGRAM_PROXY", ""),
        "pairs": env("PAIRS", ""),
        "timeframe": env("TIMEFRAME", ""),
        "timezone": env("TIMEZONE", ""),
        "alert_frequency": env("ALERT_FREQUENCY", ""),
        "rsi_period": env("RSI_PERIOD", ""),
        "rsi_overbought": env("RSI_OVERBOUGHT", ""),
        "rsi_oversold": env("RSI_OVERSOLD", ""),
        "rsi_warning_buy": env("RSI_WARNING_BUY", ""),
        "rsi_warning_sell": env("RSI_WARNING_SELL", ""),
        "cycle_seconds": env("CYCLE_SECONDS", ""),
        "user_data_file": env("USER_DATA_FILE", ""),
    }
