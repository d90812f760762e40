"""
Candle Alignment

Fetches candle history and aligns two instruments on common bar times to
produce ``PriceWindows``.
"""

import logging
import math
import time
from typing import List, Optional

from statarb.errors import InsufficientData
from statarb.market_data.client import MarketDataClient
from statarb.market_data.config import INTERVAL_MS
from statarb.market_data.schemas import Candle, PriceWindows, candle_closes

LOG = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


def fetch_history(
    client: MarketDataClient,
    symbol: str,
    bars: int = 90,
    interval: str = '1d',
    end_ms: Optional[int] = None,
    min_coverage: float = 0.8,
) -> List[Candle]:
    """
    Fetch the last ``bars`` candles of an instrument.

    Raises:
        InsufficientData: Fewer than min_coverage * bars candles returned
        UpstreamUnavailable: Client failure
    """
    if interval not in INTERVAL_MS:
        raise ValueError(f"Unsupported interval: {interval}")

    end_ms = end_ms or now_ms()
    start_ms = end_ms - bars * INTERVAL_MS[interval]
    candles = client.get_candles(symbol, interval, start_ms, end_ms)

    required = math.ceil(bars * min_coverage)
    if len(candles) < required:
        raise InsufficientData(
            f"{symbol}: {len(candles)} {interval} candles, need {required}",
            available=len(candles),
            required=required,
        )

    return candles[-bars:]


def align_candles(
    symbol1: str,
    candles1: List[Candle],
    symbol2: str,
    candles2: List[Candle],
    min_observations: int = 15,
    max_observations: Optional[int] = None,
) -> PriceWindows:
    """
    Intersect two candle series on bar open time.

    Raises:
        InsufficientData: Fewer than min_observations common bars
    """
    closes1 = candle_closes(candles1)
    closes2 = candle_closes(candles2)
    common = sorted(set(closes1) & set(closes2))
    if max_observations:
        common = common[-max_observations:]

    if len(common) < min_observations:
        raise InsufficientData(
            f"{symbol1}/{symbol2}: {len(common)} aligned bars, need {min_observations}",
            available=len(common),
            required=min_observations,
        )

    return PriceWindows(
        symbol1=symbol1,
        symbol2=symbol2,
        timestamps=common,
        prices1=[closes1[t] for t in common],
        prices2=[closes2[t] for t in common],
    )


def fetch_pair_windows(
    client: MarketDataClient,
    symbol1: str,
    symbol2: str,
    bars: int = 90,
    interval: str = '1d',
    min_observations: int = 15,
    min_coverage: float = 0.8,
    end_ms: Optional[int] = None,
) -> PriceWindows:
    """Fetch and align both legs of a pair"""
    end_ms = end_ms or now_ms()
    candles1 = fetch_history(client, symbol1, bars, interval, end_ms, min_coverage)
    candles2 = fetch_history(client, symbol2, bars, interval, end_ms, min_coverage)
    return align_candles(symbol1, candles1, symbol2, candles2, min_observations, bars)
