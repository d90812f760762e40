"""
Scheduler Configuration
"""

from dataclasses import dataclass, asdict
import os


@dataclass
class SchedulerConfig:
    """Job intervals"""
    monitor_interval_minutes: float = 15.0
    scan_interval_hours: float = 12.0
    initial_delay_seconds: float = 10.0  # Before the first monitor run
    scan_on_start: bool = False
    join_timeout_seconds: float = 5.0

    @property
    def monitor_interval_seconds(self) -> float:
        return self.monitor_interval_minutes * 60.0

    @property
    def scan_interval_seconds(self) -> float:
        return self.scan_interval_hours * 3600.0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_env(cls) -> 'SchedulerConfig':
        """Defaults with MONITOR_INTERVAL_MINUTES / SCAN_INTERVAL_HOURS overrides"""
        config = cls()
        config.monitor_interval_minutes = float(
            os.environ.get('MONITOR_INTERVAL_MINUTES', config.monitor_interval_minutes)
        )
        config.scan_interval_hours = float(
            os.environ.get('SCAN_INTERVAL_HOURS', config.scan_interval_hours)
        )
        return config
