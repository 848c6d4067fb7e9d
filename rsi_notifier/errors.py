from __future__ import annotations


class ConfigurationError(ValueError):
    """Raised at startup when thresholds or settings cannot be used."""


class DataUnavailableError(RuntimeError):
    """Raised when a pair does not have enough candles for the oscillator."""

    def __init__(self, symbol: str, timeframe: str, received: int, required: int) -> None:
        super().__init__(
            f"Not enough data for {symbol} ({timeframe}): got {received} candles, need {required}"
        )
        self.symbol = symbol
        self.timeframe = timeframe
        self.received = received
        self.required = required


class DeliveryError(RuntimeError):
    """Raised when a message could not be delivered to a chat."""
