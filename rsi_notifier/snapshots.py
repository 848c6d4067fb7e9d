from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Protocol, Sequence, Tuple

from candle_downloader.models import Candle

from .classifier import classify
from .config import RsiStrategyConfig
from .errors import DataUnavailableError
from .indicators import calculate_rsi
from .signals import MarketKey, Snapshot


class CandleProvider(Protocol):
    def fetch_candles(self, symbol: str, timeframe: str) -> Sequence[Candle]:
        """Return candles oldest first, or an empty sequence when nothing could be fetched."""


class SnapshotBuilder:
    """Fetches candles and classifies every requested pair once per cycle."""

    def __init__(
        self,
        provider: CandleProvider,
        config: RsiStrategyConfig,
        *,
        max_workers: int = 8,
        logger: logging.Logger | None = None,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._provider = provider
        self._config = config
        self._max_workers = max_workers
        self._log = logger or logging.getLogger(__name__)

    def build(
        self, requests: Iterable[Tuple[str, str]], now: datetime
    ) -> Mapping[MarketKey, Snapshot]:
        """Return a read-only mapping of snapshots for the requested pairs.

        Duplicate requests are fetched once. Pairs whose data could not be
        fetched or is too short are left out of the mapping; a failure on one
        pair never affects the others.
        """
        unique = list(dict.fromkeys(MarketKey(*request) for request in requests))
        snapshots: Dict[MarketKey, Snapshot] = {}
        if not unique:
            return MappingProxyType(snapshots)

        self._log.info("Processing %s market configs...", len(unique))
        workers = min(self._max_workers, len(unique))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {executor.submit(self.build_one, key, now): key for key in unique}
            for future in as_completed(futures):
                key = futures[future]
                try:
                    snapshot = future.result()
                except DataUnavailableError as exc:
                    self._log.warning("Skipping %s this cycle: %s", key, exc)
                    continue
                except Exception:
                    self._log.exception("Error processing %s", key)
                    continue
                snapshots[key] = snapshot
                self._log.info(
                    "[%s] %s: RSI %.2f | Signal: %s",
                    key.timeframe,
                    key.symbol,
                    snapshot.rsi,
                    snapshot.signal.value,
                )

        return MappingProxyType(snapshots)

    def build_one(self, key: MarketKey, now: datetime) -> Snapshot:
        """Classify a single pair, raising ``DataUnavailableError`` when history is too short."""
        period = self._config.rsi_period
        candles = self._provider.fetch_candles(key.symbol, key.timeframe)
        if len(candles) < period:
            raise DataUnavailableError(key.symbol, key.timeframe, len(candles), period)

        series = calculate_rsi(candles, period)
        if not series:
            raise DataUnavailableError(key.symbol, key.timeframe, len(candles), period + 1)

        current = series[-1]
        signal, estimate = classify(
            current,
            self._config.thresholds,
            key.timeframe,
            now,
            self._config.points_per_candle,
        )
        return Snapshot(
            symbol=key.symbol,
            timeframe=key.timeframe,
            signal=signal,
            price=candles[-1].close,
            rsi=current,
            observed_at=now,
            estimate=estimate,
        )
