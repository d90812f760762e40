"""
Market Data Client

Read-only access to candle history, mark prices and funding rates.
``HyperliquidClient`` talks to the Hyperliquid ``/info`` endpoint over a
scoped ``requests.Session``:

    with HyperliquidClient(config) as client:
        candles = client.get_candles("BTC", "1d", start_ms, end_ms)

Every transport or payload failure surfaces as ``UpstreamUnavailable``.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import requests

from statarb.errors import UpstreamUnavailable
from statarb.market_data.config import MarketDataConfig
from statarb.market_data.rate_limit import TokenBucket
from statarb.market_data.schemas import AssetContext, Candle

LOG = logging.getLogger(__name__)


class MarketDataClient(ABC):
    """Market-data collaborator interface"""

    def connect(self):
        """Open underlying resources"""
        return self

    def close(self):
        """Release underlying resources"""

    def __enter__(self):
        return self.connect()

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    @abstractmethod
    def get_candles(self, symbol: str, interval: str, start_ms: int, end_ms: int) -> List[Candle]:
        """Candle snapshot for an arbitrary historical range, oldest first"""

    @abstractmethod
    def get_asset_contexts(self) -> Dict[str, AssetContext]:
        """Current mark price, volume, open interest and funding per instrument"""

    def get_mark_price(self, symbol: str) -> float:
        contexts = self.get_asset_contexts()
        if symbol not in contexts:
            raise UpstreamUnavailable(f"No asset context for {symbol}")
        return contexts[symbol].mark_price


class HyperliquidClient(MarketDataClient):
    """
    Hyperliquid perpetuals market data over HTTP.

    The session is created by ``connect()`` and released by ``close()``;
    used as a context manager it is released on every exit path.
    """

    def __init__(
        self,
        config: Optional[MarketDataConfig] = None,
        rate_limiter: Optional[TokenBucket] = None,
    ):
        self.config = config or MarketDataConfig()
        self.rate_limiter = rate_limiter or TokenBucket(
            capacity=self.config.burst,
            refill_rate=self.config.requests_per_second,
        )
        self._session: Optional[requests.Session] = None

    def connect(self) -> 'HyperliquidClient':
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update({'Content-Type': 'application/json'})
            LOG.info(f"Market data session opened: {self.config.api_url}")
        return self

    def close(self):
        if self._session is not None:
            self._session.close()
            self._session = None
            LOG.info("Market data session closed")

    @property
    def is_connected(self) -> bool:
        return self._session is not None

    def _post_info(self, payload: dict):
        if not self.rate_limiter.acquire(timeout=self.config.acquire_timeout_seconds):
            raise UpstreamUnavailable("Rate limiter timeout")

        session = self._session or self.connect()._session
        url = f"{self.config.api_url.rstrip('/')}/info"
        try:
            response = session.post(url, json=payload, timeout=self.config.timeout_seconds)
        except requests.RequestException as e:
            raise UpstreamUnavailable(f"{payload.get('type')} request failed: {e}") from e

        if response.status_code != 200:
            raise UpstreamUnavailable(
                f"{payload.get('type')} returned HTTP {response.status_code}"
            )

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamUnavailable(f"{payload.get('type')} returned invalid JSON") from e

    def get_candles(self, symbol: str, interval: str, start_ms: int, end_ms: int) -> List[Candle]:
        """
        Fetch candle snapshot.

        Args:
            symbol: Coin name (e.g. "BTC")
            interval: Bar interval ("1h", "1d", ...)
            start_ms: Range start, epoch milliseconds
            end_ms: Range end, epoch milliseconds

        Returns:
            Candles sorted by open time
        """
        payload = {
            'type': 'candleSnapshot',
            'req': {
                'coin': symbol,
                'interval': interval,
                'startTime': int(start_ms),
                'endTime': int(end_ms),
            },
        }
        data = self._post_info(payload)
        if not isinstance(data, list):
            raise UpstreamUnavailable(f"Unexpected candle payload for {symbol}")

        try:
            candles = [
                Candle(
                    timestamp=int(row['t']),
                    open=float(row['o']),
                    high=float(row['h']),
                    low=float(row['l']),
                    close=float(row['c']),
                    volume=float(row['v']),
                )
                for row in data
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamUnavailable(f"Malformed candle for {symbol}: {e}") from e

        candles.sort(key=lambda c: c.timestamp)
        LOG.debug(f"{symbol} {interval}: {len(candles)} candles")
        return candles

    def get_asset_contexts(self) -> Dict[str, AssetContext]:
        """
        Fetch universe metadata with current asset contexts.

        Open interest is converted from contracts to notional.
        """
        data = self._post_info({'type': 'metaAndAssetCtxs'})
        try:
            universe = data[0]['universe']
            contexts = data[1]
        except (IndexError, KeyError, TypeError) as e:
            raise UpstreamUnavailable(f"Malformed metaAndAssetCtxs payload: {e}") from e

        result = {}
        for meta, ctx in zip(universe, contexts):
            if meta.get('isDelisted'):
                continue
            try:
                mark = float(ctx.get('markPx') or 0.0)
                result[meta['name']] = AssetContext(
                    symbol=meta['name'],
                    mark_price=mark,
                    volume_24h=float(ctx.get('dayNtlVlm') or 0.0),
                    open_interest=float(ctx.get('openInterest') or 0.0) * mark,
                    funding_rate=float(ctx.get('funding') or 0.0),
                )
            except (KeyError, TypeError, ValueError) as e:
                LOG.warning(f"Skipping malformed asset context {meta.get('name')}: {e}")

        return result
