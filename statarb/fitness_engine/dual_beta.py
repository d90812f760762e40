"""
Dual Beta

Structural hedge ratio from a long window against a dynamic hedge ratio
from a short window sized by the spread half-life. Their relative
difference (drift) signals whether the hedge is still valid.
"""

from typing import Optional, Sequence

from statarb.fitness_engine.config import DualBetaConfig
from statarb.fitness_engine.regression import as_price_pair, regress, simple_returns
from statarb.fitness_engine.schemas import BetaEstimate, DualBeta, Metric
from statarb.errors import InsufficientData


def dynamic_window(half_life: Metric, config: DualBetaConfig) -> int:
    """2 x half-life, clamped to [7, 30]; the maximum when half-life is missing"""
    if not half_life.is_some:
        return config.max_dynamic_window
    window = int(round(config.half_life_multiplier * half_life.value))
    return max(config.min_dynamic_window, min(config.max_dynamic_window, window))


def _estimate(p1, p2, window: int) -> BetaEstimate:
    a1 = p1[-window:]
    a2 = p2[-window:]
    result = regress(simple_returns(a1), simple_returns(a2))
    return BetaEstimate(
        beta=result.beta,
        r_squared=result.r_squared,
        std_err=result.std_err,
        window=len(a1),
    )


def calculate_dual_beta(
    p1: Sequence[float],
    p2: Sequence[float],
    half_life: Optional[Metric] = None,
    config: Optional[DualBetaConfig] = None,
) -> DualBeta:
    """
    Structural vs dynamic beta.

    Args:
        p1: Asset1 prices, up to the structural window
        p2: Asset2 prices, aligned with p1
        half_life: Spread half-life used to size the dynamic window
        config: Window settings

    Returns:
        DualBeta with drift = |dynamic - structural| / |structural|
    """
    config = config or DualBetaConfig()
    half_life = half_life or Metric.none("not provided")
    a1, a2 = as_price_pair(p1, p2)

    if a1.size < 3:
        raise InsufficientData(
            f"dual beta requires at least 3 observations, got {a1.size}",
            available=int(a1.size),
            required=3,
        )

    structural = _estimate(a1, a2, min(config.structural_window, a1.size))
    dynamic = _estimate(a1, a2, min(dynamic_window(half_life, config), a1.size))

    if structural.beta == 0.0:
        return DualBeta(structural=structural, dynamic=dynamic, drift=None, is_valid=False)

    drift = abs(dynamic.beta - structural.beta) / abs(structural.beta)
    return DualBeta(structural=structural, dynamic=dynamic, drift=float(drift), is_valid=True)
