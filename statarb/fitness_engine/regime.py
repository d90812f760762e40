"""
Spread Regime Classifier

Classifies the current spread state from its z-score, recent z history
and Hurst exponent. Used for reporting; the entry/exit rules do not
depend on it.
"""

from typing import Optional, Sequence

import numpy as np

from statarb.fitness_engine.config import RegimeConfig
from statarb.fitness_engine.schemas import Metric, Regime, RegimeState


def z_trend(z_history: Sequence[float], lookback: int = 3, epsilon: float = 0.1) -> str:
    """DIVERGING if |z| grew over the lookback, REVERTING if it shrank, else FLAT"""
    history = [float(z) for z in z_history if z is not None]
    if len(history) < 2:
        return "FLAT"

    recent = history[-lookback:]
    change = abs(recent[-1]) - abs(recent[0])
    if change > epsilon:
        return "DIVERGING"
    if change < -epsilon:
        return "REVERTING"
    return "FLAT"


def detect_regime(
    z: float,
    entry_threshold: float = 2.0,
    z_history: Optional[Sequence[float]] = None,
    hurst: Optional[Metric] = None,
    config: Optional[RegimeConfig] = None,
) -> RegimeState:
    """
    Classify the spread regime.

    Args:
        z: Current z-score
        entry_threshold: Entry z-score magnitude for the pair
        z_history: Recent z-scores, oldest first (current z appended if absent)
        hurst: Hurst exponent of the spread
        config: Classifier thresholds

    Returns:
        RegimeState
    """
    config = config or RegimeConfig()
    hurst = hurst or Metric.none("not provided")
    history = list(z_history or [])
    if not history or history[-1] != z:
        history.append(z)

    trend = z_trend(history, config.trend_lookback, config.trend_epsilon)
    z_volatility = float(np.std(np.diff(history))) if len(history) > 2 else 0.0
    abs_z = abs(z)

    hurst_value = hurst.value if hurst.is_some else 0.5
    # Distance below random walk, scaled so H=0.25 gives full weight
    reversion_strength = max(0.0, min(1.0, (0.5 - hurst_value) / 0.25))
    signal_strength = min(abs_z / entry_threshold, 1.5) / 1.5 if entry_threshold > 0 else 0.0

    if hurst.passes(lambda h: h >= config.trending_hurst):
        confidence = min(1.0, 0.5 + (hurst_value - config.trending_hurst))
        return RegimeState(Regime.TRENDING, confidence, "CAUTION", "HIGH", trend, z_volatility)

    if abs_z < config.idle_ratio * entry_threshold:
        return RegimeState(Regime.IDLE, 1.0 - signal_strength, "WAIT", "LOW", trend, z_volatility)

    if abs_z >= entry_threshold and trend == "DIVERGING":
        confidence = 0.5 * signal_strength + 0.5 * reversion_strength
        return RegimeState(Regime.PEAK_DIVERGENCE, confidence, "WAIT", "MEDIUM", trend, z_volatility)

    if abs_z >= entry_threshold and hurst.passes(lambda h: h < config.strong_hurst):
        confidence = 0.4 * signal_strength + 0.6 * reversion_strength
        return RegimeState(Regime.STRONG_REVERSION, confidence, "ENTER", "LOW", trend, z_volatility)

    action = "ENTER" if abs_z >= entry_threshold else "WAIT"
    confidence = 0.5 * signal_strength + 0.5 * reversion_strength
    return RegimeState(Regime.MILD_REVERSION, confidence, action, "MEDIUM", trend, z_volatility)
