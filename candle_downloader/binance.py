from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Dict, List
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import ProxyHandler, Request, build_opener

from .models import Candle, normalize_symbol

BINANCE_BASE_URL = "https://api.binance.com"
MAX_BATCH = 1000


@dataclass(frozen=True)
class BinanceClientConfig:
    base_url: str = BINANCE_BASE_URL
    timeout: float = 10.0
    proxies: Dict[str, str] | None = None
    candle_limit: int = 100
    max_retries: int = 3
    initial_retry_delay: float = 1.0  # seconds
    max_retry_delay: float = 30.0  # seconds
    retry_backoff_multiplier: float = 2.0

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            raise ValueError("Binance timeout must be positive")
        if not 1 <= self.candle_limit <= MAX_BATCH:
            raise ValueError(f"candle_limit must be in 1..{MAX_BATCH}")
        if self.max_retries < 1:
            raise ValueError("Binance max_retries must be at least 1")


class BinanceClient:
    """Minimal Binance REST client for recent candle retrieval with retry logic."""

    def __init__(self, config: BinanceClientConfig, logger: logging.Logger | None = None) -> None:
        self._base_url = config.base_url.rstrip("/")
        self._timeout = config.timeout
        self._candle_limit = config.candle_limit
        self._max_retries = config.max_retries
        self._initial_retry_delay = config.initial_retry_delay
        self._max_retry_delay = config.max_retry_delay
        self._retry_backoff_multiplier = config.retry_backoff_multiplier
        self._log = logger or logging.getLogger(__name__)
        handlers = []
        if config.proxies:
            handlers.append(ProxyHandler(config.proxies))
        self._opener = build_opener(*handlers)

    def fetch_candles(self, symbol: str, timeframe: str) -> List[Candle]:
        """Return the latest candles for a pair, or an empty list when Binance is unreachable."""
        try:
            return self.fetch_recent_klines(symbol=symbol, interval=timeframe, limit=self._candle_limit)
        except RuntimeError as exc:
            self._log.error("Error fetching data for %s (%s): %s", symbol, timeframe, exc)
            return []

    def fetch_recent_klines(self, *, symbol: str, interval: str, limit: int) -> List[Candle]:
        if limit <= 0 or limit > MAX_BATCH:
            raise ValueError(f"limit must be in 1..{MAX_BATCH}")
        params: Dict[str, str | int] = {
            "symbol": normalize_symbol(symbol),
            "interval": interval,
            "limit": limit,
        }
        query = urlencode(params)
        request = Request(f"{self._base_url}/api/v3/klines?{query}")

        last_exception: Exception | None = None
        delay = self._initial_retry_delay

        for attempt in range(self._max_retries):
            try:
                with self._opener.open(request, timeout=self._timeout) as response:
                    body = response.read()
                payload = json.loads(body)
                return [Candle.from_binance(symbol, interval, kline) for kline in payload]

            except HTTPError as exc:
                # Client errors other than 408/429 will not improve on retry
                if 400 <= exc.code < 500 and exc.code not in (429, 408):
                    raise RuntimeError(f"Binance request failed with status {exc.code}: {exc.reason}") from exc

                last_exception = exc
                if attempt < self._max_retries - 1:
                    self._log.warning(
                        "HTTP error %s on attempt %s/%s, retrying in %.1fs...",
                        exc.code,
                        attempt + 1,
                        self._max_retries,
                        delay,
                        extra={"symbol": symbol, "interval": interval, "status": exc.code},
                    )
                else:
                    raise RuntimeError(
                        f"Binance request failed after {self._max_retries} attempts with status {exc.code}: {exc.reason}"
                    ) from exc

            except URLError as exc:
                last_exception = exc
                error_msg = str(exc.reason) if exc.reason else str(exc)
                if attempt < self._max_retries - 1:
                    self._log.warning(
                        "Connection error on attempt %s/%s, retrying in %.1fs: %s",
                        attempt + 1,
                        self._max_retries,
                        delay,
                        error_msg,
                        extra={"symbol": symbol, "interval": interval},
                    )
                else:
                    raise RuntimeError(
                        f"Binance request failed after {self._max_retries} attempts: {error_msg}"
                    ) from exc

            except (TimeoutError, OSError) as exc:
                last_exception = exc
                if attempt < self._max_retries - 1:
                    self._log.warning(
                        "Timeout/OS error on attempt %s/%s, retrying in %.1fs: %s",
                        attempt + 1,
                        self._max_retries,
                        delay,
                        exc,
                        extra={"symbol": symbol, "interval": interval},
                    )
                else:
                    raise RuntimeError(
                        f"Binance request failed after {self._max_retries} attempts: {exc}"
                    ) from exc

            except Exception as exc:
                raise RuntimeError(f"Unexpected error in Binance request: {exc}") from exc

            if attempt < self._max_retries - 1:
                time.sleep(delay)
                delay = min(delay * self._retry_backoff_multiplier, self._max_retry_delay)

        if last_exception:
            raise RuntimeError(f"Binance request failed after {self._max_retries} attempts") from last_exception
        raise RuntimeError("Binance request failed for unknown reason")

    def close(self) -> None:
        # urllib opener does not require explicit closing; kept for symmetry.
        return
