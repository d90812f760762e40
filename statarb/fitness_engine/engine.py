"""
Pair Fitness Engine

Orchestrates the fitness functions over the 7/30/60/90 observation
windows of one aligned price fetch.

Window roles:
    short (7)        confirmation z-score
    reactive (30)    signal z-score, correlation, half-life
    hurst (60)       Hurst exponent of the spread
    structural (90)  cointegration and structural beta
"""

import logging
from typing import Optional, Sequence

import numpy as np

from statarb.errors import InsufficientData
from statarb.fitness_engine.config import FitnessConfig
from statarb.fitness_engine.conviction import calculate_conviction
from statarb.fitness_engine.divergence import profile_pair
from statarb.fitness_engine.dual_beta import calculate_dual_beta
from statarb.fitness_engine.hurst import calculate_hurst
from statarb.fitness_engine.regime import detect_regime
from statarb.fitness_engine.regression import as_price_pair, calculate_regression
from statarb.fitness_engine.schemas import DivergenceProfile, PairEvaluation, PairFitness
from statarb.fitness_engine.spread import calculate_spread, calculate_zscore, rolling_zscore
from statarb.fitness_engine.stationarity import calculate_half_life, evaluate_cointegration

LOG = logging.getLogger(__name__)


def check_pair_fitness(
    p1: Sequence[float],
    p2: Sequence[float],
    z_window: int = 30,
    beta: Optional[float] = None,
    config: Optional[FitnessConfig] = None,
) -> PairFitness:
    """
    Fitness of a pair over one aligned window.

    Args:
        p1: Asset1 prices
        p2: Asset2 prices
        z_window: Rolling window for the z-score
        beta: Hedge ratio override for the spread; regression beta if None
        config: Engine configuration

    Returns:
        PairFitness

    Raises:
        InsufficientData: Fewer than 2 observations
        InvalidFitness: Misaligned or non-positive prices
    """
    config = config or FitnessConfig()
    regression = calculate_regression(p1, p2)
    hedge = regression.beta if beta is None else beta

    spread = calculate_spread(p1, p2, hedge)
    coint = evaluate_cointegration(spread, config.cointegration)

    return PairFitness(
        correlation=regression.correlation,
        beta=hedge,
        r_squared=regression.r_squared,
        z_score=calculate_zscore(spread, z_window),
        is_cointegrated=coint.is_cointegrated,
        adf_stat=coint.adf_stat,
        autocorrelation=coint.autocorrelation,
        mean_reversion_rate=coint.mean_reversion_rate,
        half_life=calculate_half_life(spread),
        observations=regression.observations + 1,
        adf_pvalue=coint.adf_pvalue,
    )


class PairFitnessEngine:
    """
    Evaluates pairs across all windows.

    Stateless apart from its configuration; safe to share across threads.
    """

    def __init__(self, config: Optional[FitnessConfig] = None):
        self.config = config or FitnessConfig()
        LOG.info(f"Pair fitness engine initialized (config {self.config.get_config_hash()})")

    def check_pair_fitness(
        self,
        p1: Sequence[float],
        p2: Sequence[float],
        beta: Optional[float] = None,
    ) -> PairFitness:
        """Fitness over the given arrays using the reactive z-score window"""
        return check_pair_fitness(p1, p2, self.config.windows.reactive, beta, self.config)

    def evaluate(
        self,
        p1: Sequence[float],
        p2: Sequence[float],
        entry_threshold: float = 2.0,
        z_history: Optional[Sequence[float]] = None,
    ) -> PairEvaluation:
        """
        Full evaluation of an aligned price history (up to 90 observations).

        Args:
            p1: Asset1 prices, oldest first
            p2: Asset2 prices, aligned with p1
            entry_threshold: Pair entry threshold (regime classification)
            z_history: Recent reactive z-scores (regime trend)

        Returns:
            PairEvaluation

        Raises:
            InsufficientData: Fewer aligned observations than the minimum
        """
        windows = self.config.windows
        a1, a2 = as_price_pair(p1, p2)
        n = a1.size
        if n < windows.min_observations:
            raise InsufficientData(
                f"{n} aligned observations, need {windows.min_observations}",
                available=n,
                required=windows.min_observations,
            )

        def tail(length: int):
            length = min(length, n)
            return a1[-length:], a2[-length:]

        reactive = self.check_pair_fitness(*tail(windows.reactive))
        short_p1, short_p2 = tail(windows.short)
        short = check_pair_fitness(short_p1, short_p2, windows.short, None, self.config)

        structural_p1, structural_p2 = tail(windows.structural)
        structural_beta = None if structural_p1.size >= windows.min_structural_beta else reactive.beta
        structural = self.check_pair_fitness(structural_p1, structural_p2, structural_beta)

        hurst_p1, hurst_p2 = tail(windows.hurst)
        hurst = calculate_hurst(
            calculate_spread(hurst_p1, hurst_p2, reactive.beta),
            max_lag=self.config.hurst.max_lag,
            min_lag=self.config.hurst.min_lag,
        )

        dual_beta = calculate_dual_beta(
            structural_p1, structural_p2, reactive.half_life, self.config.dual_beta
        )

        conviction = calculate_conviction(
            correlation=reactive.correlation,
            r_squared=reactive.r_squared,
            half_life=reactive.half_life,
            hurst=hurst.metric,
            is_cointegrated=structural.is_cointegrated,
            adf_stat=structural.adf_stat,
            beta_drift=dual_beta.drift,
            config=self.config.conviction,
        )

        regime = detect_regime(
            reactive.z_score, entry_threshold, z_history, hurst.metric, self.config.regime
        )

        return PairEvaluation(
            reactive=reactive,
            short=short,
            structural=structural,
            hurst=hurst,
            dual_beta=dual_beta,
            conviction=conviction,
            regime=regime,
            current_price1=float(a1[-1]),
            current_price2=float(a2[-1]),
        )

    def profile(
        self,
        p1: Sequence[float],
        p2: Sequence[float],
        beta: float,
        window: int = 30,
        bars_per_day: float = 1.0,
    ) -> DivergenceProfile:
        """Historical divergence profile of the pair spread"""
        return profile_pair(p1, p2, beta, window, bars_per_day, self.config.divergence)


def max_abs_zscore(p1: Sequence[float], p2: Sequence[float], beta: float, window: int = 30) -> float:
    """Largest |z| of the rolling spread z-score; 0.0 without a full window"""
    z = rolling_zscore(calculate_spread(p1, p2, beta), window)
    return float(np.max(np.abs(z))) if z.size else 0.0
