"""
Output Schemas for the Fitness Engine

Structured results for regression, cointegration, half-life, Hurst,
dual beta, conviction, regime and divergence profiling.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional


# ========================================
# TAGGED OPTIONAL
# ========================================

@dataclass(frozen=True)
class Metric:
    """
    Tagged optional statistic.

    ``Metric.some(3.2)`` carries a finite value, ``Metric.none(reason)``
    carries why no value exists. Checks against a missing metric fail:
    ``Metric.none(...).passes(lambda v: v < 30)`` is False.
    """

    value: Optional[float] = None
    reason: Optional[str] = None

    @classmethod
    def some(cls, value: float) -> 'Metric':
        return cls(value=float(value), reason=None)

    @classmethod
    def none(cls, reason: str) -> 'Metric':
        return cls(value=None, reason=reason)

    @property
    def is_some(self) -> bool:
        return self.value is not None

    def passes(self, predicate: Callable[[float], bool]) -> bool:
        """Apply predicate to the value; a missing value never passes"""
        if self.value is None:
            return False
        return bool(predicate(self.value))

    def or_none(self) -> Optional[float]:
        return self.value

    def __str__(self) -> str:
        if self.value is None:
            return f"None({self.reason})"
        return f"{self.value:.4f}"


class HurstClassification(str, Enum):
    """Hurst exponent interpretation"""
    STRONG_MEAN_REVERSION = "STRONG_MEAN_REVERSION"
    MEAN_REVERTING = "MEAN_REVERTING"
    RANDOM_WALK = "RANDOM_WALK"
    WEAK_TREND = "WEAK_TREND"
    TRENDING = "TRENDING"
    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"


class Regime(str, Enum):
    """Spread regime"""
    STRONG_REVERSION = "STRONG_REVERSION"
    MILD_REVERSION = "MILD_REVERSION"
    PEAK_DIVERGENCE = "PEAK_DIVERGENCE"
    TRENDING = "TRENDING"
    IDLE = "IDLE"


# ========================================
# SINGLE-WINDOW RESULTS
# ========================================

@dataclass
class RegressionResult:
    """Return regression of asset1 on asset2"""
    correlation: float
    beta: float
    r_squared: float
    std_err: float
    observations: int

    def to_dict(self) -> dict:
        return {
            'correlation': float(self.correlation),
            'beta': float(self.beta),
            'r_squared': float(self.r_squared),
            'std_err': float(self.std_err),
            'observations': self.observations,
        }


@dataclass
class CointegrationResult:
    """
    Pseudo-ADF cointegration heuristic.

    ``adf_stat`` is derived from the lag-1 autocorrelation of spread
    differences and is not comparable with Dickey-Fuller critical values.
    ``adf_pvalue`` is only populated when the statsmodels diagnostic runs.
    """
    is_cointegrated: bool
    adf_stat: float
    autocorrelation: float
    mean_reversion_rate: float
    adf_pvalue: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            'is_cointegrated': self.is_cointegrated,
            'adf_stat': float(self.adf_stat),
            'autocorrelation': float(self.autocorrelation),
            'mean_reversion_rate': float(self.mean_reversion_rate),
            'adf_pvalue': self.adf_pvalue,
        }


@dataclass
class PairFitness:
    """
    Fitness of a pair over one aligned window.

    Recomputed on every evaluation; has no persisted identity.
    """
    correlation: float
    beta: float
    r_squared: float
    z_score: float
    is_cointegrated: bool
    adf_stat: float
    autocorrelation: float
    mean_reversion_rate: float
    half_life: Metric
    observations: int
    adf_pvalue: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            'correlation': float(self.correlation),
            'beta': float(self.beta),
            'r_squared': float(self.r_squared),
            'z_score': float(self.z_score),
            'is_cointegrated': self.is_cointegrated,
            'adf_stat': float(self.adf_stat),
            'autocorrelation': float(self.autocorrelation),
            'mean_reversion_rate': float(self.mean_reversion_rate),
            'half_life': self.half_life.or_none(),
            'observations': self.observations,
            'adf_pvalue': self.adf_pvalue,
        }


@dataclass
class HurstResult:
    """Hurst exponent with validity flag"""
    hurst: float
    is_valid: bool
    classification: HurstClassification
    lags_used: int = 0

    @property
    def metric(self) -> Metric:
        if not self.is_valid:
            return Metric.none("insufficient data for R/S analysis")
        return Metric.some(self.hurst)

    def to_dict(self) -> dict:
        return {
            'hurst': float(self.hurst),
            'is_valid': self.is_valid,
            'classification': self.classification.value,
            'lags_used': self.lags_used,
        }


@dataclass
class BetaEstimate:
    """One leg of the dual-beta estimate"""
    beta: float
    r_squared: float
    std_err: float
    window: int

    def to_dict(self) -> dict:
        return {
            'beta': float(self.beta),
            'r_squared': float(self.r_squared),
            'std_err': float(self.std_err),
            'window': self.window,
        }


@dataclass
class DualBeta:
    """Structural (long window) vs dynamic (short window) hedge ratio"""
    structural: BetaEstimate
    dynamic: BetaEstimate
    drift: Optional[float]
    is_valid: bool

    def to_dict(self) -> dict:
        return {
            'structural': self.structural.to_dict(),
            'dynamic': self.dynamic.to_dict(),
            'drift': self.drift,
            'is_valid': self.is_valid,
        }


@dataclass
class ConvictionScore:
    """Composite 0-100 quality score with per-component breakdown"""
    score: float
    breakdown: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            'score': float(self.score),
            'breakdown': {k: round(float(v), 2) for k, v in self.breakdown.items()},
        }


@dataclass
class RegimeState:
    """Regime classification of the current spread"""
    regime: Regime
    confidence: float
    action: str  # ENTER, WAIT, CAUTION
    risk_level: str  # LOW, MEDIUM, HIGH
    z_trend: str  # DIVERGING, REVERTING, FLAT
    z_volatility: float

    def to_dict(self) -> dict:
        return {
            'regime': self.regime.value,
            'confidence': float(self.confidence),
            'action': self.action,
            'risk_level': self.risk_level,
            'z_trend': self.z_trend,
            'z_volatility': float(self.z_volatility),
        }


# ========================================
# DIVERGENCE PROFILE
# ========================================

@dataclass
class ThresholdStats:
    """Reversion statistics for one entry threshold"""
    threshold: float
    events: int = 0
    reverted: int = 0
    rate: Optional[float] = None
    avg_time_to_revert: Optional[float] = None  # days
    avg_peak_z: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            'threshold': self.threshold,
            'events': self.events,
            'reverted': self.reverted,
            'rate': self.rate,
            'avg_time_to_revert': self.avg_time_to_revert,
            'avg_peak_z': self.avg_peak_z,
        }


@dataclass
class DivergenceProfile:
    """
    Historical divergence/reversion profile of a spread z-score series.

    ``fixed`` uses the absolute 0.5 reversion band, ``percent`` uses a band
    proportional to each threshold. ``optimal_entry`` is derived from the
    percentage variant.
    """
    fixed: Dict[float, ThresholdStats]
    percent: Dict[float, ThresholdStats]
    optimal_entry: float
    max_historical_z: float
    current_z: float
    observations: int

    def stats_at(self, z: float) -> Optional[ThresholdStats]:
        """Percentage-variant stats of the highest threshold at or below |z|"""
        eligible = [t for t in sorted(self.percent) if t <= abs(z)]
        if not eligible:
            return None
        return self.percent[eligible[-1]]

    def to_dict(self) -> dict:
        return {
            'fixed': {str(t): s.to_dict() for t, s in self.fixed.items()},
            'percent': {str(t): s.to_dict() for t, s in self.percent.items()},
            'optimal_entry': float(self.optimal_entry),
            'max_historical_z': float(self.max_historical_z),
            'current_z': float(self.current_z),
            'observations': self.observations,
        }


# ========================================
# FULL EVALUATION
# ========================================

@dataclass
class PairEvaluation:
    """
    Complete evaluation of a pair over its 7/30/60/90 windows.

    Consumed by both the scanner and the lifecycle monitor.
    """
    reactive: PairFitness
    short: PairFitness
    structural: PairFitness
    hurst: HurstResult
    dual_beta: DualBeta
    conviction: ConvictionScore
    regime: RegimeState
    current_price1: float
    current_price2: float

    @property
    def z_score(self) -> float:
        return self.reactive.z_score

    @property
    def correlation(self) -> float:
        return self.reactive.correlation

    @property
    def beta(self) -> float:
        return self.reactive.beta

    @property
    def half_life(self) -> Metric:
        return self.reactive.half_life

    @property
    def beta_drift(self) -> Optional[float]:
        return self.dual_beta.drift

    def to_dict(self) -> Dict[str, Any]:
        return {
            'reactive': self.reactive.to_dict(),
            'short': self.short.to_dict(),
            'structural': self.structural.to_dict(),
            'hurst': self.hurst.to_dict(),
            'dual_beta': self.dual_beta.to_dict(),
            'conviction': self.conviction.to_dict(),
            'regime': self.regime.to_dict(),
            'current_price1': float(self.current_price1),
            'current_price2': float(self.current_price2),
        }
