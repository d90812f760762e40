"""
Tests for the Pair Fitness Engine

Covers regression, spread z-score, cointegration heuristic, half-life,
Hurst exponent, dual beta, conviction, regime classification and the
multi-window evaluation.

Run: pytest tests/test_fitness_engine.py -v
"""

import math

import numpy as np
import pytest

from statarb.errors import InsufficientData, InvalidFitness
from statarb.fitness_engine import (
    FitnessConfig,
    HurstClassification,
    Metric,
    PairFitnessEngine,
    Regime,
    calculate_conviction,
    calculate_dual_beta,
    calculate_half_life,
    calculate_hurst,
    calculate_regression,
    calculate_spread,
    calculate_zscore,
    check_pair_fitness,
    classify_hurst,
    detect_regime,
    evaluate_cointegration,
    pair_hurst,
    quality_score,
    rolling_zscore,
)
from statarb.fitness_engine.dual_beta import dynamic_window
from statarb.fitness_engine.config import DualBetaConfig
from statarb.fitness_engine.regime import z_trend
from statarb.lifecycle.rules import validate_entry

from conftest import build_evaluation, cointegrated_prices, random_walk_prices


# ========================================
# FIXTURES
# ========================================

@pytest.fixture
def cointegrated_pair():
    """90 aligned closes with hedge ratio 0.8 and a mean-reverting spread."""
    return cointegrated_prices(90)


@pytest.fixture
def ar1_spread():
    """AR(1) spread with phi = 0.8."""
    np.random.seed(42)
    n = 2000
    noise = np.random.normal(0, 0.01, n)
    spread = np.zeros(n)
    for i in range(1, n):
        spread[i] = 0.8 * spread[i - 1] + noise[i]
    return spread


@pytest.fixture
def engine():
    return PairFitnessEngine()


class TestMetric:
    """Test the tagged optional statistic."""

    def test_some_passes_predicate(self):
        """Present values are checked against the predicate."""
        assert Metric.some(3.0).passes(lambda v: v < 30)
        assert not Metric.some(40.0).passes(lambda v: v < 30)

    def test_none_never_passes(self):
        """A missing value fails every check."""
        missing = Metric.none("not mean-reverting")
        assert not missing.is_some
        assert not missing.passes(lambda v: True)
        assert missing.or_none() is None
        assert missing.reason == "not mean-reverting"


class TestRegression:
    """Test return regression."""

    def test_recovers_hedge_ratio(self, cointegrated_pair):
        """Beta of asset1 on asset2 is close to the construction ratio."""
        p1, p2 = cointegrated_pair
        result = calculate_regression(p1, p2)

        assert abs(result.beta - 0.8) < 0.05
        assert result.correlation > 0.95
        assert result.r_squared == pytest.approx(result.correlation ** 2)
        assert result.observations == 89

    def test_constant_regressor(self):
        """Zero variance in asset2 gives beta 0 and correlation 0."""
        p1 = random_walk_prices(30)
        p2 = np.full(30, 50.0)
        result = calculate_regression(p1, p2)

        assert result.beta == 0.0
        assert result.correlation == 0.0

    def test_insufficient_data(self):
        """A single observation is rejected."""
        with pytest.raises(InsufficientData):
            calculate_regression([100.0], [50.0])

    def test_rejects_invalid_prices(self):
        """Misaligned and non-positive inputs are invalid."""
        with pytest.raises(InvalidFitness):
            calculate_regression([1.0, 2.0, 3.0], [1.0, 2.0])
        with pytest.raises(InvalidFitness):
            calculate_regression([1.0, 0.0, 3.0], [1.0, 2.0, 3.0])
        with pytest.raises(InvalidFitness):
            calculate_regression([1.0, np.nan, 3.0], [1.0, 2.0, 3.0])


class TestSpread:
    """Test spread and z-score."""

    def test_log_spread(self):
        """Spread is ln(p1) - beta * ln(p2)."""
        spread = calculate_spread([math.e, math.e ** 2], [math.e, math.e], 0.5)
        np.testing.assert_allclose(spread, [0.5, 1.5])

    def test_zscore_round_trip(self):
        """The last value equals mean + z * std over the window."""
        np.random.seed(42)
        spread = np.cumsum(np.random.normal(0, 1, 60))
        z = calculate_zscore(spread, window=30)

        tail = spread[-30:]
        assert tail[-1] == pytest.approx(tail.mean() + z * tail.std())

    def test_zscore_window_clamped(self):
        """A window longer than the series uses the whole series."""
        spread = [1.0, 2.0, 3.0, 4.0]
        assert calculate_zscore(spread, window=30) == pytest.approx(calculate_zscore(spread, window=4))

    def test_zscore_zero_dispersion(self):
        """A flat spread has z-score 0."""
        assert calculate_zscore(np.full(30, 1.5), 30) == 0.0
        assert calculate_zscore([], 30) == 0.0

    def test_rolling_zscore_matches_point_zscore(self):
        """Each rolling value equals the point z-score of its window."""
        np.random.seed(42)
        spread = np.cumsum(np.random.normal(0, 1, 50))
        z = rolling_zscore(spread, 20)

        assert len(z) == 31
        assert z[-1] == pytest.approx(calculate_zscore(spread, 20))
        assert z[0] == pytest.approx(calculate_zscore(spread[:20], 20))


class TestStationarity:
    """Test cointegration heuristic and half-life."""

    def test_cointegrated_spread(self, cointegrated_pair):
        """The oscillating spread passes the pseudo-ADF threshold."""
        p1, p2 = cointegrated_pair
        spread = calculate_spread(p1, p2, calculate_regression(p1, p2).beta)
        result = evaluate_cointegration(spread)

        assert result.is_cointegrated
        assert result.adf_stat < -2.5
        assert result.adf_stat == pytest.approx(-result.autocorrelation * math.sqrt(len(spread)))
        assert result.adf_pvalue is None

    def test_short_series_not_cointegrated(self):
        """Fewer than 3 observations never cointegrate."""
        result = evaluate_cointegration([1.0, 2.0])
        assert not result.is_cointegrated
        assert result.adf_stat == 0.0

    def test_adf_diagnostic_is_informational(self, ar1_spread):
        """The statsmodels p-value is attached without changing the decision."""
        spread = ar1_spread
        config = FitnessConfig().cointegration
        config.run_adf_diagnostic = True

        with_pvalue = evaluate_cointegration(spread, config)
        without = evaluate_cointegration(spread)

        assert with_pvalue.adf_pvalue is not None
        assert 0.0 <= with_pvalue.adf_pvalue <= 1.0
        assert with_pvalue.is_cointegrated == without.is_cointegrated

    def test_half_life_round_trip(self, ar1_spread):
        """exp(-ln2 / half_life) recovers the AR(1) coefficient."""
        half_life = calculate_half_life(ar1_spread)

        assert half_life.is_some
        assert abs(math.exp(-math.log(2) / half_life.value) - 0.8) < 0.05

    def test_half_life_positive(self, cointegrated_pair):
        """Half-life of a mean-reverting spread is finite and positive."""
        p1, p2 = cointegrated_pair
        half_life = calculate_half_life(calculate_spread(p1, p2, 0.8))
        assert half_life.passes(lambda hl: 0 < hl < 30)

    def test_half_life_explosive(self):
        """An explosive series has no half-life."""
        half_life = calculate_half_life(1.05 ** np.arange(50))
        assert not half_life.is_some
        assert half_life.reason == "not mean-reverting"

    def test_half_life_insufficient(self):
        """Fewer than 3 observations have no half-life."""
        assert calculate_half_life([1.0, 2.0]).reason == "insufficient data"


class TestHurst:
    """Test rescaled range Hurst exponent."""

    def test_insufficient_data(self):
        """Fewer than 2 * max_lag samples are invalid with H = 0.5."""
        result = calculate_hurst(np.arange(30, dtype=float), max_lag=20)

        assert not result.is_valid
        assert result.hurst == 0.5
        assert result.classification == HurstClassification.INSUFFICIENT_DATA
        assert not result.metric.is_some

    def test_deterministic_and_scale_invariant(self):
        """Same input gives the same H; scaling the series does not change it."""
        np.random.seed(42)
        levels = np.cumsum(np.random.normal(0, 1, 200))

        first = calculate_hurst(levels)
        again = calculate_hurst(levels)
        scaled = calculate_hurst(levels * 7.5)

        assert first.hurst == again.hurst
        assert scaled.hurst == pytest.approx(first.hurst)

    @pytest.mark.parametrize("scale", [0.01, 7.5, 1000.0])
    def test_pair_hurst_price_scale_invariant(self, scale):
        """Multiplying both price series by a constant leaves H unchanged."""
        p1 = random_walk_prices(200, seed=1)
        p2 = random_walk_prices(200, seed=2)

        base = pair_hurst(p1, p2, beta=0.8)
        scaled = pair_hurst(p1 * scale, p2 * scale, beta=0.8)

        assert base.is_valid
        assert scaled.hurst == pytest.approx(base.hurst, abs=1e-9)
        assert scaled.classification == base.classification

    def test_mean_reverting_below_random_walk(self):
        """White-noise levels score lower than a random walk."""
        np.random.seed(42)
        noise = np.random.normal(0, 1, 1000)

        reverting = calculate_hurst(noise)
        walk = calculate_hurst(np.cumsum(noise))

        assert reverting.is_valid and walk.is_valid
        assert 0.0 <= reverting.hurst <= 1.0
        assert 0.0 <= walk.hurst <= 1.0
        assert reverting.hurst < 0.45
        assert reverting.hurst < walk.hurst

    def test_classification_bands(self):
        """Hurst values map to their bands."""
        assert classify_hurst(0.30) == HurstClassification.STRONG_MEAN_REVERSION
        assert classify_hurst(0.40) == HurstClassification.MEAN_REVERTING
        assert classify_hurst(0.50) == HurstClassification.RANDOM_WALK
        assert classify_hurst(0.60) == HurstClassification.WEAK_TREND
        assert classify_hurst(0.70) == HurstClassification.TRENDING
        assert classify_hurst(0.30, is_valid=False) == HurstClassification.INSUFFICIENT_DATA


class TestDualBeta:
    """Test structural vs dynamic beta."""

    def test_dynamic_window_bounds(self):
        """Window is 2 x half-life clamped to [7, 30]."""
        config = DualBetaConfig()
        assert dynamic_window(Metric.some(5.0), config) == 10
        assert dynamic_window(Metric.some(1.0), config) == 7
        assert dynamic_window(Metric.some(50.0), config) == 30
        assert dynamic_window(Metric.none("n/a"), config) == 30

    def test_stable_relationship_has_low_drift(self):
        """A fixed power relationship gives nearly identical betas."""
        p2 = random_walk_prices(90, scale=0.02)
        p1 = p2 ** 0.8
        result = calculate_dual_beta(p1, p2, Metric.some(5.0))

        assert result.is_valid
        assert result.dynamic.window == 10
        assert result.structural.window == 90
        assert result.drift < 0.05

    def test_zero_structural_beta(self):
        """A flat regressor leaves drift undefined."""
        result = calculate_dual_beta(random_walk_prices(40), np.full(40, 10.0))
        assert not result.is_valid
        assert result.drift is None


class TestConviction:
    """Test composite conviction score."""

    def test_perfect_pair_scores_100(self):
        """Every component at its maximum."""
        score = calculate_conviction(
            correlation=1.0, r_squared=1.0,
            half_life=Metric.some(2.0), hurst=Metric.some(0.3),
            is_cointegrated=True, adf_stat=-5.0,
        )
        assert score.score == pytest.approx(100.0)
        assert set(score.breakdown) == {
            'correlation', 'r_squared', 'half_life', 'hurst', 'cointegration', 'beta_stability'
        }

    def test_missing_metrics_contribute_zero(self):
        """Missing half-life and Hurst add nothing; the score floors at 0."""
        score = calculate_conviction(
            correlation=0.5, r_squared=0.0,
            half_life=Metric.none("n/a"), hurst=Metric.none("n/a"),
            is_cointegrated=False, beta_drift=1.0,
        )
        assert score.breakdown['half_life'] == 0.0
        assert score.breakdown['hurst'] == 0.0
        assert score.score == 0.0

    def test_monotone_in_correlation(self):
        """Higher correlation never lowers the score."""
        scores = [
            calculate_conviction(
                correlation=c, r_squared=0.5,
                half_life=Metric.some(10.0), hurst=Metric.some(0.4),
                is_cointegrated=True,
            ).score
            for c in (0.6, 0.75, 0.85, 0.95)
        ]
        assert scores == sorted(scores)

    def test_drift_penalty(self):
        """Beta drift costs up to 10 points."""
        base = dict(correlation=0.9, r_squared=0.8, half_life=Metric.some(5.0),
                    hurst=Metric.some(0.4), is_cointegrated=True)
        stable = calculate_conviction(**base, beta_drift=0.0)
        drifting = calculate_conviction(**base, beta_drift=0.5)

        assert drifting.breakdown['beta_stability'] == pytest.approx(-10.0)
        assert stable.score - drifting.score == pytest.approx(10.0)

    def test_quality_score(self):
        """Legacy ranking score needs a half-life."""
        assert quality_score(0.9, Metric.some(2.0), 0.6) == pytest.approx(27.0)
        assert quality_score(0.9, Metric.some(0.1), 0.6) == pytest.approx(108.0)
        assert quality_score(0.9, Metric.none("n/a"), 0.6) == 0.0


class TestRegime:
    """Test spread regime classification."""

    def test_trending(self):
        """High Hurst overrides everything."""
        state = detect_regime(2.5, 2.0, [], Metric.some(0.6))
        assert state.regime == Regime.TRENDING
        assert state.action == "CAUTION"

    def test_idle(self):
        """Small |z| is idle."""
        state = detect_regime(0.5, 2.0, None, Metric.some(0.4))
        assert state.regime == Regime.IDLE
        assert state.action == "WAIT"

    def test_peak_divergence(self):
        """Beyond threshold and still diverging."""
        state = detect_regime(2.5, 2.0, [1.5, 2.0], Metric.some(0.4))
        assert state.z_trend == "DIVERGING"
        assert state.regime == Regime.PEAK_DIVERGENCE

    def test_strong_reversion(self):
        """Beyond threshold, reverting, with low Hurst."""
        state = detect_regime(2.5, 2.0, [3.0, 2.8], Metric.some(0.4))
        assert state.regime == Regime.STRONG_REVERSION
        assert state.action == "ENTER"

    def test_mild_reversion_below_threshold(self):
        """Between the idle band and the threshold."""
        state = detect_regime(1.5, 2.0, None, Metric.some(0.48))
        assert state.regime == Regime.MILD_REVERSION
        assert state.action == "WAIT"

    def test_z_trend(self):
        """Trend follows |z| over the lookback."""
        assert z_trend([1.0, 1.5, 2.0]) == "DIVERGING"
        assert z_trend([-2.5, -2.0, -1.5]) == "REVERTING"
        assert z_trend([2.0, 2.05]) == "FLAT"
        assert z_trend([2.0]) == "FLAT"


class TestCheckPairFitness:
    """Test single-window fitness."""

    def test_fitness_fields(self, cointegrated_pair):
        """Fitness combines regression, z-score and stationarity."""
        p1, p2 = cointegrated_pair
        fitness = check_pair_fitness(p1, p2, z_window=30)

        assert fitness.observations == 90
        assert fitness.correlation > 0.95
        assert fitness.is_cointegrated
        assert fitness.half_life.is_some
        assert fitness.to_dict()['half_life'] == fitness.half_life.value

    def test_beta_override(self, cointegrated_pair):
        """A supplied beta is used for the spread."""
        p1, p2 = cointegrated_pair
        fitness = check_pair_fitness(p1, p2, beta=0.5)
        assert fitness.beta == 0.5


class TestPairFitnessEngine:
    """Test the multi-window evaluation."""

    def test_windows(self, engine, cointegrated_pair):
        """Each window sees its own tail of the fetch."""
        p1, p2 = cointegrated_pair
        evaluation = engine.evaluate(p1, p2)

        assert evaluation.short.observations == 7
        assert evaluation.reactive.observations == 30
        assert evaluation.structural.observations == 90
        assert evaluation.current_price1 == pytest.approx(p1[-1])
        assert evaluation.current_price2 == pytest.approx(p2[-1])

    def test_cointegrated_pair_is_fit(self, engine, cointegrated_pair):
        """Correlated, cointegrated, fast reverting, anti-persistent."""
        p1, p2 = cointegrated_pair
        evaluation = engine.evaluate(p1, p2)

        assert evaluation.correlation > 0.95
        assert abs(evaluation.structural.beta - 0.8) < 0.05
        assert evaluation.structural.is_cointegrated
        assert evaluation.half_life.passes(lambda hl: hl < 30)
        assert evaluation.hurst.is_valid
        assert evaluation.hurst.hurst < 0.5
        assert evaluation.conviction.score > 70
        assert 0.0 <= evaluation.conviction.score <= 100.0

    def test_short_history_reuses_reactive_beta(self, engine, cointegrated_pair):
        """Below 60 observations the structural test uses the reactive beta."""
        p1, p2 = cointegrated_pair
        evaluation = engine.evaluate(p1[-35:], p2[-35:])

        assert evaluation.structural.observations == 35
        assert evaluation.structural.beta == evaluation.reactive.beta
        assert not evaluation.hurst.is_valid

    def test_insufficient_observations(self, engine, cointegrated_pair):
        """Fewer than 15 aligned observations cannot be evaluated."""
        p1, p2 = cointegrated_pair
        with pytest.raises(InsufficientData) as exc_info:
            engine.evaluate(p1[:10], p2[:10])
        assert exc_info.value.required == 15
        assert exc_info.value.available == 10

    def test_evaluation_serializes(self, engine, cointegrated_pair):
        """to_dict produces plain values."""
        p1, p2 = cointegrated_pair
        data = engine.evaluate(p1, p2).to_dict()

        assert set(data) >= {'reactive', 'short', 'structural', 'hurst', 'dual_beta',
                             'conviction', 'regime', 'current_price1', 'current_price2'}
        assert isinstance(data['regime']['regime'], str)

    def test_config_hash_stable(self):
        """Identical configs hash identically; round trip through dict."""
        config = FitnessConfig()
        restored = FitnessConfig.from_dict(config.to_dict())

        assert restored.get_config_hash() == config.get_config_hash()
        assert len(config.get_config_hash()) == 16
        assert restored.divergence.thresholds == config.divergence.thresholds


class TestEntryThresholdReflexivity:
    """Raising the entry threshold only affects readiness."""

    def test_threshold_only_changes_signal_check(self):
        """Same evaluation, higher threshold: only no_signal flips."""
        evaluation = build_evaluation(z=2.5, z_short=2.5)
        low = validate_entry(evaluation, 2.0)
        high = validate_entry(evaluation, 3.0)

        assert low.valid and low.is_ready
        assert not high.valid and not high.is_ready
        assert high.reason == "no_signal"
        changed = {k for k in low.checks if low.checks[k] != high.checks[k]}
        assert changed == {'no_signal'}
