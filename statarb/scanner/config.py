"""
Scanner Configuration

Liquidity filters, sector universe, candidate generation, statistical
filters and divergence-profile settings for pair discovery.
"""

from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Dict, List, Optional
import hashlib
import json
import logging
import os

LOG = logging.getLogger(__name__)


# Hyperliquid perpetuals grouped by sector
DEFAULT_SECTORS = {
    "L1": [
        "BTC", "ETH", "SOL", "AVAX", "SUI", "APT", "SEI", "NEAR",
        "ADA", "DOT", "ATOM", "TIA", "INJ", "TON", "TRX", "HYPE",
    ],
    "L2": [
        "ARB", "OP", "STRK", "MATIC", "POL", "MNT", "BLAST", "ZK", "IMX",
    ],
    "DeFi": [
        "UNI", "AAVE", "MKR", "CRV", "LDO", "PENDLE", "DYDX", "GMX",
        "SNX", "COMP", "JUP", "ENA", "ONDO",
    ],
    "Meme": [
        "DOGE", "kPEPE", "WIF", "kBONK", "kSHIB", "POPCAT", "MEW", "BRETT",
        "FARTCOIN", "PENGU",
    ],
    "AI": [
        "FET", "TAO", "RENDER", "WLD", "AR", "VIRTUAL", "AI16Z",
    ],
    "Infra": [
        "LINK", "PYTH", "FIL", "GRT", "STX", "ENS",
    ],
    "Payments": [
        "LTC", "BCH", "XRP", "XLM", "ZEC",
    ],
}


def load_sector_map(path: str) -> Dict[str, List[str]]:
    """
    Load a sector map from JSON.

    Accepts either ``{"Sector": [symbols]}`` or the ordered form
    ``{"_sectors": ["Sector", ...], "Sector": [symbols]}``.
    """
    with open(Path(path), 'r') as f:
        raw = json.load(f)

    order = raw.get('_sectors') or [k for k in raw if not k.startswith('_')]
    return {sector: list(raw.get(sector, [])) for sector in order}


@dataclass
class ScannerConfig:
    """
    Pair discovery settings.

    Defaults reproduce the production scanner: $500k volume, $100k open
    interest, correlation >= 0.6, half-life <= 45 days, three pairs per
    sector.
    """

    # Liquidity
    min_volume: float = 500_000.0  # 24h notional volume, USD
    min_open_interest: float = 100_000.0  # USD

    # Universe
    sectors: Dict[str, List[str]] = field(default_factory=lambda: dict(DEFAULT_SECTORS))

    # Cross-sector candidates
    enable_cross_sector: bool = False
    cross_sector_top_k: int = 3  # Most liquid assets per sector eligible
    cross_sector_min_correlation: float = 0.75

    # Statistical filters
    min_correlation: float = 0.6
    max_half_life: float = 45.0
    max_hurst: float = 0.5

    # Selection
    top_per_sector: int = 3
    top_cross_sector: int = 5

    # Execution
    max_workers: int = 4

    # Divergence profile on hourly data
    enable_profile: bool = True
    profile_z_window: int = 720  # 30 days of hourly bars
    profile_bars_per_day: float = 24.0
    default_entry_threshold: float = 2.0
    exit_threshold: float = 0.5

    config_version: str = "1.0.0"

    def symbol_to_sector(self) -> Dict[str, str]:
        """Reverse map; the first sector listing a symbol wins"""
        mapping = {}
        for sector, symbols in self.sectors.items():
            for symbol in symbols:
                mapping.setdefault(symbol, sector)
        return mapping

    def to_dict(self) -> dict:
        return asdict(self)

    def get_config_hash(self) -> str:
        config_str = json.dumps(self.to_dict(), sort_keys=True)
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]

    @classmethod
    def from_dict(cls, config_dict: dict) -> 'ScannerConfig':
        return cls(**config_dict)

    @classmethod
    def from_env(cls, sectors_file: Optional[str] = None) -> 'ScannerConfig':
        """Defaults with environment overrides (SECTORS_FILE, SCAN_MAX_WORKERS, ...)"""
        config = cls()
        sectors_file = sectors_file or os.environ.get('SECTORS_FILE')
        if sectors_file:
            config.sectors = load_sector_map(sectors_file)
            LOG.info(f"Loaded {len(config.sectors)} sectors from {sectors_file}")

        config.max_workers = int(os.environ.get('SCAN_MAX_WORKERS', config.max_workers))
        config.enable_cross_sector = (
            os.environ.get('SCAN_CROSS_SECTOR', str(config.enable_cross_sector)).lower()
            in ('1', 'true', 'yes')
        )
        return config
