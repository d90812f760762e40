"""
Shared fixtures for the pairs engine tests.

Evaluations are built directly from the fitness dataclasses so lifecycle
tests can script exact z-scores, correlations and half-lives without
depending on synthetic price paths.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import numpy as np
import pytest

from statarb.errors import UpstreamUnavailable
from statarb.fitness_engine.hurst import classify_hurst
from statarb.fitness_engine.schemas import (
    BetaEstimate,
    ConvictionScore,
    DualBeta,
    HurstClassification,
    HurstResult,
    Metric,
    PairEvaluation,
    PairFitness,
    Regime,
    RegimeState,
)
from statarb.lifecycle.rules import calculate_weights
from statarb.lifecycle.schemas import Direction, Position, PositionState, WatchlistEntry, pair_symbol
from statarb.market_data.client import MarketDataClient
from statarb.market_data.schemas import AssetContext, Candle

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
DAY_MS = 86_400_000
BASE_MS = 1_767_225_600_000  # 2026-01-01 00:00 UTC


# ========================================
# BUILDERS
# ========================================

def build_fitness(
    z: float = 0.0,
    correlation: float = 0.85,
    beta: float = 1.0,
    half_life: Optional[float] = 5.0,
    is_cointegrated: bool = True,
    mean_reversion_rate: float = 0.6,
    observations: int = 30,
) -> PairFitness:
    return PairFitness(
        correlation=correlation,
        beta=beta,
        r_squared=correlation ** 2,
        z_score=z,
        is_cointegrated=is_cointegrated,
        adf_stat=-3.5 if is_cointegrated else -1.0,
        autocorrelation=0.4,
        mean_reversion_rate=mean_reversion_rate,
        half_life=Metric.some(half_life) if half_life is not None else Metric.none("not mean-reverting"),
        observations=observations,
    )


def build_evaluation(
    z: float = -2.5,
    z_short: Optional[float] = None,
    correlation: float = 0.85,
    beta: float = 1.0,
    half_life: Optional[float] = 5.0,
    hurst: Optional[float] = 0.35,
    is_cointegrated: bool = True,
    conviction: float = 70.0,
    drift: Optional[float] = 0.05,
    price1: float = 100.0,
    price2: float = 50.0,
) -> PairEvaluation:
    """Evaluation with the given reactive metrics; the short window confirms by default"""
    z_short = z if z_short is None else z_short
    if hurst is None:
        hurst_result = HurstResult(0.5, False, HurstClassification.INSUFFICIENT_DATA)
    else:
        hurst_result = HurstResult(hurst, True, classify_hurst(hurst), lags_used=11)

    dynamic_beta = beta * (1.0 + drift) if drift is not None else beta
    return PairEvaluation(
        reactive=build_fitness(z, correlation, beta, half_life, is_cointegrated),
        short=build_fitness(z_short, correlation, beta, half_life, is_cointegrated, observations=7),
        structural=build_fitness(z, correlation, beta, half_life, is_cointegrated, observations=90),
        hurst=hurst_result,
        dual_beta=DualBeta(
            structural=BetaEstimate(beta, correlation ** 2, 0.01, 90),
            dynamic=BetaEstimate(dynamic_beta, correlation ** 2, 0.02, 10),
            drift=drift,
            is_valid=drift is not None,
        ),
        conviction=ConvictionScore(score=conviction, breakdown={'correlation': 10.0}),
        regime=RegimeState(Regime.MILD_REVERSION, 0.5, "WAIT", "MEDIUM", "FLAT", 0.0),
        current_price1=price1,
        current_price2=price2,
    )


def build_entry(asset1: str = "BTC", asset2: str = "ETH", **kwargs) -> WatchlistEntry:
    values = dict(sector="L1", entry_threshold=2.0, max_historical_z=3.0)
    values.update(kwargs)
    return WatchlistEntry(pair=pair_symbol(asset1, asset2), asset1=asset1, asset2=asset2, **values)


def build_position(
    asset1: str = "BTC",
    asset2: str = "ETH",
    direction: Direction = Direction.LONG,
    entry_z: float = -2.2,
    entry_threshold: float = 2.0,
    beta: float = 1.0,
    price1: float = 100.0,
    price2: float = 50.0,
    entry_time: Optional[datetime] = None,
    **kwargs,
) -> Position:
    """Open position; LONG means long asset1 / short asset2"""
    w1, w2 = calculate_weights(beta)
    if direction == Direction.LONG:
        legs = dict(long_asset=asset1, short_asset=asset2, long_weight=w1, short_weight=w2,
                    long_entry_price=price1, short_entry_price=price2)
    else:
        legs = dict(long_asset=asset2, short_asset=asset1, long_weight=w2, short_weight=w1,
                    long_entry_price=price2, short_entry_price=price1)

    values = dict(half_life=5.0, max_historical_z=3.0, entry_beta=beta, entry_correlation=0.85)
    values.update(kwargs)
    return Position(
        pair=pair_symbol(asset1, asset2),
        asset1=asset1,
        asset2=asset2,
        direction=direction,
        entry_z_score=entry_z,
        entry_threshold=entry_threshold,
        entry_time=entry_time or NOW - timedelta(days=1),
        **legs,
        **values,
    )


def partially_exited(position: Position, pnl: float = 1.0) -> Position:
    position.partial_exit_taken = True
    position.partial_exit_pnl = pnl
    position.partial_exit_time = position.entry_time + timedelta(hours=12)
    position.state = PositionState.PARTIALLY_EXITED
    return position


# ========================================
# PRICE PATHS
# ========================================

def cointegrated_prices(n: int = 90):
    """
    Asset1 tracks asset2 with hedge ratio 0.8 plus a fast mean-reverting
    oscillation (period 6) in the log spread.
    """
    t = np.arange(n)
    p2 = 100.0 * np.exp(0.05 * np.sin(2 * np.pi * t / 9))
    p1 = p2 ** 0.8 * np.exp(0.003 * np.sin(2 * np.pi * t / 6))
    return p1, p2


def random_walk_prices(n: int = 90, seed: int = 42, scale: float = 0.03):
    rng = np.random.RandomState(seed)
    return 100.0 * np.exp(np.cumsum(rng.normal(0, scale, n)))


def make_candles(closes, start_ms: int = BASE_MS, step_ms: int = DAY_MS) -> List[Candle]:
    return [
        Candle(timestamp=start_ms + i * step_ms, open=c, high=c, low=c, close=c, volume=1.0)
        for i, c in enumerate(closes)
    ]


# ========================================
# FAKE COLLABORATORS
# ========================================

class FakeMarketDataClient(MarketDataClient):
    """Serves fixed daily closes per symbol regardless of the requested range"""

    def __init__(self, prices: Optional[Dict[str, List[float]]] = None,
                 contexts: Optional[Dict[str, AssetContext]] = None):
        self.prices = dict(prices or {})
        self.contexts = dict(contexts or {})
        self.failing = set()
        self.contexts_error = None
        self.candle_calls = []

    def get_candles(self, symbol, interval, start_ms, end_ms):
        self.candle_calls.append((symbol, interval))
        if symbol in self.failing:
            raise UpstreamUnavailable(f"{symbol} unavailable")
        return make_candles(self.prices.get(symbol, []))

    def get_asset_contexts(self):
        if self.contexts_error is not None:
            raise self.contexts_error
        return dict(self.contexts)


class ScriptedEvaluations:
    """
    Stand-in for ``TradeMonitor.evaluate_pair``.

    Pairs are looked up unordered; a missing pair raises UpstreamUnavailable
    and an Exception value is raised as-is.
    """

    def __init__(self):
        self.evaluations = {}
        self.calls = []

    def set(self, asset1: str, asset2: str, outcome):
        self.evaluations[frozenset((asset1, asset2))] = outcome

    def __call__(self, asset1, asset2, entry_threshold=2.0, z_history=None):
        self.calls.append((asset1, asset2))
        outcome = self.evaluations.get(frozenset((asset1, asset2)))
        if outcome is None:
            raise UpstreamUnavailable(f"No data for {asset1}/{asset2}")
        if isinstance(outcome, Exception):
            raise outcome
        return None, outcome


class RecordingNotifier:
    def __init__(self):
        self.messages = []

    def send(self, text):
        self.messages.append(text)

    def close(self):
        pass


# ========================================
# FIXTURES
# ========================================

@pytest.fixture
def make_evaluation():
    return build_evaluation


@pytest.fixture
def make_entry():
    return build_entry


@pytest.fixture
def make_position():
    return build_position


@pytest.fixture
def scripted():
    return ScriptedEvaluations()


@pytest.fixture
def notifier():
    return RecordingNotifier()
