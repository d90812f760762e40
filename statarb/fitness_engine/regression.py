"""
Return Regression

Correlation and hedge ratio of asset1 on asset2 from simple returns.

    beta        = Cov(r1, r2) / Var(r2)
    correlation = Cov(r1, r2) / (σ1 · σ2)

Population moments are used throughout so results match the rolling
statistics used by the spread z-score.
"""

import logging
from typing import Sequence, Tuple

import numpy as np

from statarb.errors import InsufficientData, InvalidFitness
from statarb.fitness_engine.schemas import RegressionResult

LOG = logging.getLogger(__name__)


def as_price_array(prices: Sequence[float], name: str = "prices") -> np.ndarray:
    """
    Validate and convert a price sequence.

    Raises:
        InvalidFitness: If any price is non-finite or non-positive
    """
    arr = np.asarray(prices, dtype=float)
    if arr.ndim != 1:
        raise InvalidFitness(f"{name} must be one-dimensional, got shape {arr.shape}")
    if arr.size and (not np.all(np.isfinite(arr)) or np.any(arr <= 0)):
        raise InvalidFitness(f"{name} contains non-finite or non-positive values")
    return arr


def as_price_pair(p1: Sequence[float], p2: Sequence[float]) -> Tuple[np.ndarray, np.ndarray]:
    """Validate two aligned price arrays"""
    a1 = as_price_array(p1, "p1")
    a2 = as_price_array(p2, "p2")
    if a1.size != a2.size:
        raise InvalidFitness(f"price arrays are not aligned: {a1.size} != {a2.size}")
    return a1, a2


def simple_returns(prices: np.ndarray) -> np.ndarray:
    """r_t = (p_t - p_{t-1}) / p_{t-1}"""
    return np.diff(prices) / prices[:-1]


def regress(y: np.ndarray, x: np.ndarray) -> RegressionResult:
    """
    OLS slope of y on x with population moments.

    Zero variance in x yields beta 0; zero variance in either series
    yields correlation 0.
    """
    n = len(x)
    mean_x = x.mean()
    mean_y = y.mean()
    cov = float(np.sum((x - mean_x) * (y - mean_y)) / n)
    var_x = float(np.sum((x - mean_x) ** 2) / n)
    var_y = float(np.sum((y - mean_y) ** 2) / n)

    beta = cov / var_x if var_x > 0 else 0.0
    denom = np.sqrt(var_x * var_y)
    correlation = cov / denom if denom > 0 else 0.0
    correlation = float(np.clip(correlation, -1.0, 1.0))

    std_err = 0.0
    if n > 2 and var_x > 0:
        residuals = (y - mean_y) - beta * (x - mean_x)
        sigma2 = float(np.sum(residuals ** 2)) / (n - 2)
        std_err = float(np.sqrt(sigma2 / (var_x * n)))

    return RegressionResult(
        correlation=correlation,
        beta=float(beta),
        r_squared=correlation ** 2,
        std_err=std_err,
        observations=n,
    )


def calculate_regression(p1: Sequence[float], p2: Sequence[float]) -> RegressionResult:
    """
    Regress asset1 returns on asset2 returns.

    Args:
        p1: Asset1 prices (aligned)
        p2: Asset2 prices (aligned)

    Returns:
        RegressionResult with correlation, beta (asset1 per unit asset2), R²

    Raises:
        InsufficientData: Fewer than 2 prices
    """
    a1, a2 = as_price_pair(p1, p2)
    if a1.size < 2:
        raise InsufficientData(
            f"regression requires at least 2 observations, got {a1.size}",
            available=int(a1.size),
            required=2,
        )

    return regress(simple_returns(a1), simple_returns(a2))
