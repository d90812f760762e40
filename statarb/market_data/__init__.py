"""
Market Data Layer

External market-data collaborator for the pairs engine: candle history,
mark prices and funding rates from Hyperliquid perpetuals, plus candle
alignment into read-only price windows.
"""

from statarb.market_data.config import MarketDataConfig
from statarb.market_data.schemas import Candle, AssetContext, PriceWindows, NetFunding
from statarb.market_data.client import MarketDataClient, HyperliquidClient
from statarb.market_data.rate_limit import TokenBucket
from statarb.market_data.alignment import fetch_history, align_candles, fetch_pair_windows
from statarb.market_data.funding import (
    annualize,
    funding_spread,
    pair_funding_spread,
    calculate_net_funding,
)

__version__ = "1.0.0"

__all__ = [
    'MarketDataConfig',
    'Candle',
    'AssetContext',
    'PriceWindows',
    'NetFunding',
    'MarketDataClient',
    'HyperliquidClient',
    'TokenBucket',
    'fetch_history',
    'align_candles',
    'fetch_pair_windows',
    'annualize',
    'funding_spread',
    'pair_funding_spread',
    'calculate_net_funding',
]
