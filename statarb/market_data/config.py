"""
Market Data Configuration

Exchange endpoint, request pacing and history windows.
"""

from dataclasses import dataclass, asdict
import hashlib
import json
import os


@dataclass
class MarketDataConfig:
    """
    Market-data client settings.

    Request pacing replaces fixed sleeps between calls with a token bucket
    shared by every worker.
    """

    api_url: str = "https://api.hyperliquid.xyz"
    timeout_seconds: float = 10.0

    # Token bucket
    requests_per_second: float = 2.0
    burst: int = 5
    acquire_timeout_seconds: float = 30.0

    # Daily history for fitness windows
    candle_interval: str = "1d"
    history_days: int = 90
    min_coverage: float = 0.8  # Keep a series only with >= 80% of requested bars

    # Hourly history for divergence profiling
    profile_interval: str = "1h"
    profile_days: int = 60

    def to_dict(self) -> dict:
        return asdict(self)

    def get_config_hash(self) -> str:
        config_str = json.dumps(self.to_dict(), sort_keys=True)
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]

    @classmethod
    def from_dict(cls, config_dict: dict) -> 'MarketDataConfig':
        return cls(**config_dict)

    @classmethod
    def from_env(cls) -> 'MarketDataConfig':
        """Build config from environment variables"""
        config = cls()
        config.api_url = os.environ.get('HYPERLIQUID_API_URL', config.api_url)
        config.requests_per_second = float(
            os.environ.get('MARKET_DATA_RPS', config.requests_per_second)
        )
        return config


INTERVAL_MS = {
    '1m': 60_000,
    '5m': 300_000,
    '15m': 900_000,
    '1h': 3_600_000,
    '4h': 14_400_000,
    '1d': 86_400_000,
}
