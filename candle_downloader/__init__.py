"""Candle retrieval from Binance."""

from .binance import BinanceClient, BinanceClientConfig
from .models import Candle, normalize_symbol

__all__ = [
    "BinanceClient",
    "BinanceClientConfig",
    "Candle",
    "normalize_symbol",
]
