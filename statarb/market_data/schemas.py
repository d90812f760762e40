"""
Market Data Schemas

Candles, per-instrument asset contexts and aligned price windows.
"""

from dataclasses import dataclass
from typing import Dict, List, Tuple

import numpy as np


@dataclass(frozen=True)
class Candle:
    """One OHLC bar; only close and volume feed the fitness engine"""
    timestamp: int  # Bar open time, epoch milliseconds
    open: float
    high: float
    low: float
    close: float
    volume: float

    def to_dict(self) -> dict:
        return {
            'timestamp': self.timestamp,
            'open': self.open,
            'high': self.high,
            'low': self.low,
            'close': self.close,
            'volume': self.volume,
        }


@dataclass
class AssetContext:
    """Current market state of one perpetual"""
    symbol: str
    mark_price: float
    volume_24h: float  # Notional
    open_interest: float  # Notional (contracts x mark price)
    funding_rate: float  # Hourly rate

    @property
    def funding_annualized(self) -> float:
        """Hourly funding as annual percentage"""
        return self.funding_rate * 24 * 365 * 100

    def to_dict(self) -> dict:
        return {
            'symbol': self.symbol,
            'mark_price': self.mark_price,
            'volume_24h': self.volume_24h,
            'open_interest': self.open_interest,
            'funding_rate': self.funding_rate,
            'funding_annualized': self.funding_annualized,
        }


@dataclass
class PriceWindows:
    """
    Aligned close prices of a pair from a single fetch.

    Windows are read-only tail slices; callers never mutate them.
    """
    symbol1: str
    symbol2: str
    timestamps: np.ndarray
    prices1: np.ndarray
    prices2: np.ndarray

    def __post_init__(self):
        self.timestamps = np.array(self.timestamps, dtype=np.int64)
        self.prices1 = np.array(self.prices1, dtype=float)
        self.prices2 = np.array(self.prices2, dtype=float)
        for arr in (self.timestamps, self.prices1, self.prices2):
            arr.flags.writeable = False

    def __len__(self) -> int:
        return int(self.prices1.size)

    def window(self, length: int) -> Tuple[np.ndarray, np.ndarray]:
        """Last min(length, len) aligned closes of both legs"""
        length = min(length, len(self))
        return self.prices1[-length:], self.prices2[-length:]

    @property
    def current_price1(self) -> float:
        return float(self.prices1[-1])

    @property
    def current_price2(self) -> float:
        return float(self.prices2[-1])

    @property
    def pair(self) -> str:
        return f"{self.symbol1}/{self.symbol2}"


@dataclass
class NetFunding:
    """Funding carry of a long/short pair position, in percent"""
    long_asset: str
    short_asset: str
    net_8h: float
    daily: float
    monthly: float

    def to_dict(self) -> dict:
        return {
            'long_asset': self.long_asset,
            'short_asset': self.short_asset,
            'net_8h': self.net_8h,
            'daily': self.daily,
            'monthly': self.monthly,
        }


def candle_closes(candles: List[Candle]) -> Dict[int, float]:
    """Map bar timestamp to close"""
    return {c.timestamp: c.close for c in candles}
