"""
Lifecycle Monitor Configuration

Entry, exit, admission and cycle settings for the trade lifecycle monitor.
"""

from dataclasses import dataclass, field, asdict
import hashlib
import json
import os


@dataclass
class EntryConfig:
    """Entry validation thresholds"""
    default_entry_threshold: float = 2.0
    min_correlation: float = 0.6  # Reactive window
    max_half_life: float = 30.0  # Days
    short_confirm_ratio: float = 0.8  # |z7| >= ratio * threshold, same sign
    max_hurst: float = 0.5
    block_on_reversion_warning: bool = True


@dataclass
class ExitConfig:
    """Exit rules, evaluated in priority order"""
    exit_threshold: float = 0.5  # Full reversion band
    partial_z_ratio: float = 0.5  # Partial when |z| <= ratio * entry threshold
    partial_pnl: float = 3.0  # Partial take-profit, percent
    partial_size: float = 0.5
    final_pnl: float = 5.0  # Final take-profit after partial, percent
    stop_entry_multiplier: float = 1.5
    stop_history_multiplier: float = 1.2
    stop_floor: float = 3.0
    default_max_historical_z: float = 3.0
    default_entry_z: float = 2.0
    time_stop_multiplier: float = 2.0  # x entry half-life
    default_half_life: float = 15.0
    breakdown_correlation: float = 0.4


@dataclass
class AdmissionConfig:
    """Capacity and overlap limits"""
    max_positions: int = 5
    max_positions_per_asset: int = 2


@dataclass
class CycleConfig:
    """Monitor cycle execution"""
    max_workers: int = 1  # 1 = sequential fetches
    cycle_timeout_seconds: float = 600.0
    approaching_ratio: float = 0.5  # |z| >= ratio * threshold -> approaching
    z_history_length: int = 10


@dataclass
class MonitorConfig:
    """
    Master configuration for the trade lifecycle monitor.

    Defaults reproduce the pairs bot constants: entry at |z| >= 2.0, partial
    exit at half the entry threshold or +3%, final exit at |z| <= 0.5 or +5%,
    stop at max(1.5 x entry z, 1.2 x max historical z, 3.0), five
    concurrent positions, two per asset.
    """

    entry: EntryConfig = field(default_factory=EntryConfig)
    exit: ExitConfig = field(default_factory=ExitConfig)
    admission: AdmissionConfig = field(default_factory=AdmissionConfig)
    cycle: CycleConfig = field(default_factory=CycleConfig)

    config_version: str = "1.0.0"

    def to_dict(self) -> dict:
        return asdict(self)

    def get_config_hash(self) -> str:
        config_str = json.dumps(self.to_dict(), sort_keys=True)
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]

    @classmethod
    def from_dict(cls, config_dict: dict) -> 'MonitorConfig':
        return cls(
            entry=EntryConfig(**config_dict.get('entry', {})),
            exit=ExitConfig(**config_dict.get('exit', {})),
            admission=AdmissionConfig(**config_dict.get('admission', {})),
            cycle=CycleConfig(**config_dict.get('cycle', {})),
            config_version=config_dict.get('config_version', '1.0.0'),
        )

    @classmethod
    def from_env(cls) -> 'MonitorConfig':
        """Defaults with environment overrides (MAX_CONCURRENT_TRADES, ...)"""
        config = cls()
        config.admission.max_positions = int(
            os.environ.get('MAX_CONCURRENT_TRADES', config.admission.max_positions)
        )
        config.cycle.max_workers = int(
            os.environ.get('MONITOR_MAX_WORKERS', config.cycle.max_workers)
        )
        return config
