"""
Fitness Engine Configuration

Windows and thresholds used by the pair fitness functions.
"""

from dataclasses import dataclass, field, asdict
from typing import Tuple
import hashlib
import json


@dataclass
class WindowConfig:
    """Observation windows derived from one aligned daily fetch"""
    short: int = 7  # Confirmation z-score window
    reactive: int = 30  # Signal window (z-score, correlation, exits)
    hurst: int = 60  # Hurst exponent window
    structural: int = 90  # Cointegration / structural beta window
    min_structural_beta: int = 60  # Below this, structural test reuses reactive beta
    min_observations: int = 15  # Minimum aligned observations to evaluate at all


@dataclass
class CointegrationConfig:
    """Pseudo-ADF heuristic thresholds"""
    adf_threshold: float = -2.5  # adf_stat below this -> cointegrated
    min_mean_reversion_rate: float = 0.5  # Alternative path: mrr above this
    max_abs_autocorr: float = 0.3  # ... and |p| below this
    run_adf_diagnostic: bool = False  # Attach statsmodels ADF p-value (informational)
    adf_min_observations: int = 20
    adf_max_lag: int = 5


@dataclass
class HurstConfig:
    """Rescaled-range analysis settings"""
    min_lag: int = 10
    max_lag: int = 20  # Requires 2 * max_lag samples


@dataclass
class DualBetaConfig:
    """Structural vs dynamic hedge ratio windows"""
    structural_window: int = 90
    min_dynamic_window: int = 7
    max_dynamic_window: int = 30
    half_life_multiplier: float = 2.0


@dataclass
class ConvictionConfig:
    """Point allocation for the composite conviction score"""
    correlation_points: float = 20.0
    correlation_floor: float = 0.7
    r_squared_points: float = 15.0
    half_life_points: float = 20.0
    ideal_half_life: float = 3.0
    max_half_life: float = 30.0
    hurst_points: float = 25.0
    ideal_hurst: float = 0.35
    max_hurst: float = 0.55
    cointegration_points: float = 15.0
    adf_bonus_points: float = 5.0
    adf_bonus_start: float = -2.5  # Bonus accrues below this ADF stat
    adf_bonus_span: float = 2.0  # ... reaching the full bonus this far below it
    drift_penalty_points: float = 10.0
    drift_penalty_full: float = 0.5  # Drift at which the full penalty applies


@dataclass
class DivergenceConfig:
    """Historical divergence / reversion profiling"""
    thresholds: Tuple[float, ...] = (1.0, 1.5, 2.0, 2.5, 3.0)
    fixed_target: float = 0.5  # Reversion band for the fixed variant
    percent_target: float = 0.5  # Reversion band as fraction of threshold
    strong_rate: float = 0.9
    strong_min_events: int = 3
    fallback_rate: float = 0.8
    fallback_min_events: int = 2
    min_entry: float = 1.5  # Floor for optimal entry
    warning_min_rate: float = 0.7  # Below this at current |z| -> reversion warning
    warning_min_events: int = 2


@dataclass
class RegimeConfig:
    """Regime classifier thresholds"""
    idle_ratio: float = 0.5  # |z| below ratio * threshold -> IDLE
    trending_hurst: float = 0.55
    strong_hurst: float = 0.45
    trend_lookback: int = 3
    trend_epsilon: float = 0.1


@dataclass
class FitnessConfig:
    """
    Master configuration for the pair fitness engine.

    Defaults reproduce the production constants of the pairs bot:
    30-observation signal window, 90-observation structural window,
    60-observation Hurst window.
    """

    windows: WindowConfig = field(default_factory=WindowConfig)
    cointegration: CointegrationConfig = field(default_factory=CointegrationConfig)
    hurst: HurstConfig = field(default_factory=HurstConfig)
    dual_beta: DualBetaConfig = field(default_factory=DualBetaConfig)
    conviction: ConvictionConfig = field(default_factory=ConvictionConfig)
    divergence: DivergenceConfig = field(default_factory=DivergenceConfig)
    regime: RegimeConfig = field(default_factory=RegimeConfig)

    config_version: str = "1.0.0"

    def to_dict(self) -> dict:
        """Convert config to dictionary"""
        data = asdict(self)
        data['divergence']['thresholds'] = list(self.divergence.thresholds)
        return data

    def get_config_hash(self) -> str:
        """Compute hash of configuration for versioning"""
        config_str = json.dumps(self.to_dict(), sort_keys=True)
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]

    @classmethod
    def from_dict(cls, config_dict: dict) -> 'FitnessConfig':
        """Create config from dictionary"""
        divergence = dict(config_dict.get('divergence', {}))
        if 'thresholds' in divergence:
            divergence['thresholds'] = tuple(divergence['thresholds'])

        return cls(
            windows=WindowConfig(**config_dict.get('windows', {})),
            cointegration=CointegrationConfig(**config_dict.get('cointegration', {})),
            hurst=HurstConfig(**config_dict.get('hurst', {})),
            dual_beta=DualBetaConfig(**config_dict.get('dual_beta', {})),
            conviction=ConvictionConfig(**config_dict.get('conviction', {})),
            divergence=DivergenceConfig(**divergence),
            regime=RegimeConfig(**config_dict.get('regime', {})),
            config_version=config_dict.get('config_version', '1.0.0'),
        )
