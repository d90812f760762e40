"""
Spread & Z-Score

spread_t = ln(p1_t) - β · ln(p2_t)
z        = (spread_last - mean(window)) / std(window)

Standard deviation is the population estimate (ddof=0).
"""

from typing import Sequence

import numpy as np
import pandas as pd

from statarb.fitness_engine.regression import as_price_pair


def calculate_spread(p1: Sequence[float], p2: Sequence[float], beta: float) -> np.ndarray:
    """Log-price spread under hedge ratio beta"""
    a1, a2 = as_price_pair(p1, p2)
    return np.log(a1) - beta * np.log(a2)


def calculate_zscore(spread: Sequence[float], window: int = 30) -> float:
    """
    Z-score of the last spread value against its trailing window.

    Args:
        spread: Spread series
        window: Rolling window, clamped to the available length

    Returns:
        Z-score, or 0.0 when the window has no dispersion
    """
    values = np.asarray(spread, dtype=float)
    if values.size == 0:
        return 0.0

    tail = values[-min(window, values.size):]
    std = float(tail.std())
    if std == 0.0 or not np.isfinite(std):
        return 0.0

    return float((tail[-1] - tail.mean()) / std)


def rolling_zscore(spread: Sequence[float], window: int) -> np.ndarray:
    """
    Z-score at every index with a full trailing window.

    Indices without a full window, or whose window has zero dispersion,
    are dropped.
    """
    series = pd.Series(np.asarray(spread, dtype=float))
    rolling = series.rolling(window=window, min_periods=window)
    mean = rolling.mean()
    std = rolling.std(ddof=0)

    z = (series - mean) / std.replace(0.0, np.nan)
    return z.dropna().to_numpy()
