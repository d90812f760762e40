"""
Pair Fitness Engine

Pure statistical functions that decide whether a pair of instruments has a
mean-reverting log-price spread worth trading.

Core Responsibilities:
    - Return regression (correlation, hedge ratio)
    - Spread z-score
    - Cointegration heuristic and AR(1) half-life
    - Hurst exponent of the spread (R/S analysis)
    - Structural vs dynamic beta drift
    - Composite conviction score and regime classification
    - Historical divergence/reversion profiling

Flow:
    Market Data → Fitness Engine → Scanner / Lifecycle Monitor
"""

from statarb.fitness_engine.config import FitnessConfig
from statarb.fitness_engine.engine import PairFitnessEngine, check_pair_fitness, max_abs_zscore
from statarb.fitness_engine.schemas import (
    Metric,
    PairFitness,
    PairEvaluation,
    RegressionResult,
    CointegrationResult,
    HurstResult,
    HurstClassification,
    DualBeta,
    ConvictionScore,
    Regime,
    RegimeState,
    ThresholdStats,
    DivergenceProfile,
)
from statarb.fitness_engine.regression import calculate_regression
from statarb.fitness_engine.spread import calculate_spread, calculate_zscore, rolling_zscore
from statarb.fitness_engine.stationarity import evaluate_cointegration, calculate_half_life
from statarb.fitness_engine.hurst import calculate_hurst, pair_hurst, classify_hurst
from statarb.fitness_engine.dual_beta import calculate_dual_beta
from statarb.fitness_engine.conviction import calculate_conviction, quality_score
from statarb.fitness_engine.regime import detect_regime
from statarb.fitness_engine.divergence import analyze_divergences, profile_pair, reversion_warning

__version__ = "1.0.0"

__all__ = [
    'FitnessConfig',
    'PairFitnessEngine',
    'check_pair_fitness',
    'max_abs_zscore',
    'Metric',
    'PairFitness',
    'PairEvaluation',
    'RegressionResult',
    'CointegrationResult',
    'HurstResult',
    'HurstClassification',
    'DualBeta',
    'ConvictionScore',
    'Regime',
    'RegimeState',
    'ThresholdStats',
    'DivergenceProfile',
    'calculate_regression',
    'calculate_spread',
    'calculate_zscore',
    'rolling_zscore',
    'evaluate_cointegration',
    'calculate_half_life',
    'calculate_hurst',
    'pair_hurst',
    'classify_hurst',
    'calculate_dual_beta',
    'calculate_conviction',
    'quality_score',
    'detect_regime',
    'analyze_divergences',
    'profile_pair',
    'reversion_warning',
]
