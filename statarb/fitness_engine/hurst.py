"""
Hurst Exponent (Rescaled Range)

R/S analysis on the increments of a log-space level series, normally the
pair spread. For each lag L the increments are cut into non-overlapping
blocks of length L; each block contributes R/S where R is the range of the
cumulative demeaned sum and S the block's population std. The slope of
log(mean R/S) against log(L) is the Hurst exponent.

    H < 0.5   mean reverting
    H ≈ 0.5   random walk
    H > 0.5   trending
"""

import logging
from typing import Optional, Sequence

import numpy as np
from scipy import stats

from statarb.fitness_engine.config import HurstConfig
from statarb.fitness_engine.schemas import HurstClassification, HurstResult
from statarb.fitness_engine.spread import calculate_spread

LOG = logging.getLogger(__name__)


def classify_hurst(hurst: float, is_valid: bool = True) -> HurstClassification:
    """Map a Hurst exponent to its classification"""
    if not is_valid:
        return HurstClassification.INSUFFICIENT_DATA
    if hurst < 0.35:
        return HurstClassification.STRONG_MEAN_REVERSION
    if hurst < 0.45:
        return HurstClassification.MEAN_REVERTING
    if hurst < 0.55:
        return HurstClassification.RANDOM_WALK
    if hurst < 0.65:
        return HurstClassification.WEAK_TREND
    return HurstClassification.TRENDING


def _invalid() -> HurstResult:
    return HurstResult(
        hurst=0.5,
        is_valid=False,
        classification=HurstClassification.INSUFFICIENT_DATA,
    )


def _rescaled_range(increments: np.ndarray, lag: int) -> Optional[float]:
    """Mean R/S over non-overlapping blocks of length lag"""
    n_blocks = increments.size // lag
    if n_blocks < 1:
        return None

    blocks = increments[:n_blocks * lag].reshape(n_blocks, lag)
    values = []
    for block in blocks:
        std = block.std()
        if std <= 0:
            continue
        cumulative = np.cumsum(block - block.mean())
        values.append((cumulative.max() - cumulative.min()) / std)

    if not values:
        return None
    return float(np.mean(values))


def calculate_hurst(
    series: Sequence[float],
    max_lag: int = 20,
    min_lag: int = 10,
) -> HurstResult:
    """
    Hurst exponent of a log-space level series.

    Args:
        series: Levels (e.g. the log spread); increments are taken internally
        max_lag: Largest block length; requires 2 * max_lag samples
        min_lag: Smallest block length

    Returns:
        HurstResult clamped to [0, 1]; (0.5, invalid) when data is short
    """
    levels = np.asarray(series, dtype=float)
    if levels.size < 2 * max_lag or not np.all(np.isfinite(levels)):
        return _invalid()

    increments = np.diff(levels)
    upper = min(max_lag, increments.size // 2)

    lags = []
    rs_values = []
    for lag in range(min_lag, upper + 1):
        rs = _rescaled_range(increments, lag)
        if rs is None or rs <= 0:
            continue
        lags.append(lag)
        rs_values.append(rs)

    if len(lags) < 2:
        return _invalid()

    fit = stats.linregress(np.log(lags), np.log(rs_values))
    hurst = float(np.clip(fit.slope, 0.0, 1.0))

    return HurstResult(
        hurst=hurst,
        is_valid=True,
        classification=classify_hurst(hurst),
        lags_used=len(lags),
    )


def pair_hurst(
    p1: Sequence[float],
    p2: Sequence[float],
    beta: float,
    config: Optional[HurstConfig] = None,
) -> HurstResult:
    """Hurst exponent of the log spread ln(p1) - β·ln(p2)"""
    config = config or HurstConfig()
    spread = calculate_spread(p1, p2, beta)
    return calculate_hurst(spread, max_lag=config.max_lag, min_lag=config.min_lag)
