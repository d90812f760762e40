"""
Conviction Score

Composite 0-100 trade quality score:

    correlation     up to 20   (linear above the 0.7 floor)
    R²              up to 15
    half-life       up to 20   (full at <= 3 days, zero at >= 30)
    Hurst           up to 25   (full at <= 0.35, zero at >= 0.55)
    cointegration   15 + up to 5 bonus for a strongly negative ADF stat
    beta drift      down to -10
"""

from typing import Optional

from statarb.fitness_engine.config import ConvictionConfig
from statarb.fitness_engine.schemas import ConvictionScore, Metric


def _clip01(value: float) -> float:
    return max(0.0, min(1.0, value))


def _falling_linear(value: float, ideal: float, zero_at: float) -> float:
    """1.0 at or below ideal, 0.0 at or above zero_at, linear between"""
    if value <= ideal:
        return 1.0
    if value >= zero_at:
        return 0.0
    return (zero_at - value) / (zero_at - ideal)


def calculate_conviction(
    correlation: float,
    r_squared: float,
    half_life: Metric,
    hurst: Metric,
    is_cointegrated: bool,
    adf_stat: float = 0.0,
    beta_drift: Optional[float] = None,
    config: Optional[ConvictionConfig] = None,
) -> ConvictionScore:
    """
    Calculate composite conviction score.

    Missing half-life or Hurst contributes zero points; a missing beta
    drift contributes no penalty.

    Returns:
        ConvictionScore clamped to [0, 100]
    """
    config = config or ConvictionConfig()

    corr_pts = config.correlation_points * _clip01(
        (correlation - config.correlation_floor) / (1.0 - config.correlation_floor)
    )
    r2_pts = config.r_squared_points * _clip01(r_squared)

    hl_pts = 0.0
    if half_life.is_some:
        hl_pts = config.half_life_points * _falling_linear(
            half_life.value, config.ideal_half_life, config.max_half_life
        )

    hurst_pts = 0.0
    if hurst.is_some:
        hurst_pts = config.hurst_points * _falling_linear(
            hurst.value, config.ideal_hurst, config.max_hurst
        )

    coint_pts = 0.0
    if is_cointegrated:
        bonus = _clip01((config.adf_bonus_start - adf_stat) / config.adf_bonus_span)
        coint_pts = config.cointegration_points + config.adf_bonus_points * bonus

    drift_pts = 0.0
    if beta_drift is not None:
        drift_pts = -config.drift_penalty_points * _clip01(beta_drift / config.drift_penalty_full)

    breakdown = {
        'correlation': corr_pts,
        'r_squared': r2_pts,
        'half_life': hl_pts,
        'hurst': hurst_pts,
        'cointegration': coint_pts,
        'beta_stability': drift_pts,
    }
    score = max(0.0, min(100.0, sum(breakdown.values())))

    return ConvictionScore(score=float(score), breakdown=breakdown)


def quality_score(correlation: float, half_life: Metric, mean_reversion_rate: float) -> float:
    """
    Legacy ranking score corr · (1 / max(hl, 0.5)) · mrr · 100.

    Kept on watchlist entries for display next to conviction.
    """
    if not half_life.is_some:
        return 0.0
    return correlation * (1.0 / max(half_life.value, 0.5)) * mean_reversion_rate * 100.0
