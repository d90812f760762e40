"""
Spread Stationarity

Cointegration heuristic and AR(1) half-life of a spread series.

The cointegration test is an approximation of an Augmented Dickey-Fuller
test: the lag-1 autocorrelation p of spread differences is turned into a
pseudo statistic adf = -p·√n. It is a heuristic, not a p-value. A real
ADF p-value can be attached as a diagnostic via statsmodels, but it never
decides the outcome.
"""

import logging
import math
from typing import Optional, Sequence

import numpy as np
from statsmodels.tsa.stattools import adfuller

from statarb.fitness_engine.config import CointegrationConfig
from statarb.fitness_engine.schemas import CointegrationResult, Metric

LOG = logging.getLogger(__name__)

LN2 = math.log(2.0)


def lag1_autocorrelation(values: Sequence[float]) -> float:
    """
    Lag-1 autocorrelation with population variance.

        p = [Σ d_i·d_{i-1} / (n-1)] / [Σ d_i² / n]

    Returns 0.0 for fewer than 2 values or zero variance.
    """
    x = np.asarray(values, dtype=float)
    n = x.size
    if n < 2:
        return 0.0

    dev = x - x.mean()
    variance = float(np.sum(dev ** 2)) / n
    if variance <= 0:
        return 0.0

    autocov = float(np.sum(dev[1:] * dev[:-1])) / (n - 1)
    return autocov / variance


def mean_reversion_rate(spread: Sequence[float]) -> float:
    """Fraction of steps where the deviation from the mean shrinks in magnitude"""
    x = np.asarray(spread, dtype=float)
    if x.size < 2:
        return 0.0

    dev = np.abs(x - x.mean())
    shrinking = dev[1:] < dev[:-1]
    return float(np.count_nonzero(shrinking)) / (x.size - 1)


def adf_pvalue(spread: Sequence[float], max_lag: int = 5) -> Optional[float]:
    """
    Augmented Dickey-Fuller p-value of the spread (diagnostic only).

    Returns None when the test cannot be computed.
    """
    x = np.asarray(spread, dtype=float)
    if x.size < max_lag + 3 or float(x.std()) == 0.0:
        return None

    try:
        result = adfuller(x, maxlag=max_lag, regression='c', autolag='AIC')
    except (ValueError, np.linalg.LinAlgError) as e:
        LOG.debug(f"ADF diagnostic failed: {e}")
        return None

    return float(result[1])


def evaluate_cointegration(
    spread: Sequence[float],
    config: Optional[CointegrationConfig] = None,
) -> CointegrationResult:
    """
    Pseudo-ADF cointegration heuristic.

    Cointegrated if adf_stat < -2.5, or if the mean reversion rate exceeds
    0.5 while |p| stays below 0.3.

    Args:
        spread: Spread series (levels)
        config: Heuristic thresholds

    Returns:
        CointegrationResult
    """
    config = config or CointegrationConfig()
    x = np.asarray(spread, dtype=float)
    n = x.size

    if n < 3:
        return CointegrationResult(
            is_cointegrated=False,
            adf_stat=0.0,
            autocorrelation=0.0,
            mean_reversion_rate=0.0,
        )

    p = lag1_autocorrelation(np.diff(x))
    adf_stat = -p * math.sqrt(n)
    mrr = mean_reversion_rate(x)

    is_cointegrated = (
        adf_stat < config.adf_threshold
        or (mrr > config.min_mean_reversion_rate and abs(p) < config.max_abs_autocorr)
    )

    pvalue = None
    if config.run_adf_diagnostic and n >= config.adf_min_observations:
        pvalue = adf_pvalue(x, max_lag=config.adf_max_lag)

    return CointegrationResult(
        is_cointegrated=bool(is_cointegrated),
        adf_stat=float(adf_stat),
        autocorrelation=float(p),
        mean_reversion_rate=mrr,
        adf_pvalue=pvalue,
    )


def ar1_coefficient(spread: Sequence[float]) -> Optional[float]:
    """OLS slope φ of s_t on s_{t-1}; None if s_{t-1} has no variance"""
    x = np.asarray(spread, dtype=float)
    if x.size < 3:
        return None

    lagged = x[:-1]
    current = x[1:]
    lag_dev = lagged - lagged.mean()
    denom = float(np.sum(lag_dev ** 2))
    if denom <= 0:
        return None

    return float(np.sum(lag_dev * (current - current.mean())) / denom)


def calculate_half_life(spread: Sequence[float]) -> Metric:
    """
    Half-life of mean reversion in observations (days for daily data).

    Primary: AR(1) on levels, half_life = -ln2 / ln(φ) for 0 < φ < 1.
    Fallback: differenced autocorrelation, -ln2 / ln(1 + p) for -1 < p < 0.

    Returns:
        Metric.some(half_life) with half_life > 0, or Metric.none(reason)
    """
    x = np.asarray(spread, dtype=float)
    if x.size < 3:
        return Metric.none("insufficient data")

    phi = ar1_coefficient(x)
    if phi is not None and 0.0 < phi < 1.0:
        half_life = -LN2 / math.log(phi)
        if math.isfinite(half_life) and half_life > 0:
            return Metric.some(half_life)

    p = lag1_autocorrelation(np.diff(x))
    if -1.0 < p < 0.0:
        half_life = -LN2 / math.log(1.0 + p)
        if math.isfinite(half_life) and half_life > 0:
            return Metric.some(half_life)

    return Metric.none("not mean-reverting")
