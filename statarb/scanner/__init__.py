"""
Pair Scanner

Discovers mean-reverting pairs among liquid perpetuals and publishes the
best of them to the watchlist.

Core Responsibilities:
    1. Liquidity and blacklist filtering of the exchange universe
    2. Sector grouping and candidate generation (optionally cross-sector)
    3. Parallel fitness evaluation behind the shared rate limiter
    4. Conviction ranking and per-sector selection
    5. Hourly divergence profiling for per-pair entry thresholds

Flow:
    Market Data → Scanner → Watchlist → Lifecycle Monitor
"""

from statarb.scanner.config import ScannerConfig, DEFAULT_SECTORS, load_sector_map
from statarb.scanner.schemas import CandidatePair, ScoredPair, ScanResult
from statarb.scanner.universe import filter_liquid, group_by_sector, generate_candidates
from statarb.scanner.engine import PairScanner, filter_reason, select_top
from statarb.scanner.report import format_scan_report

__version__ = "1.0.0"

__all__ = [
    'ScannerConfig',
    'DEFAULT_SECTORS',
    'load_sector_map',
    'CandidatePair',
    'ScoredPair',
    'ScanResult',
    'filter_liquid',
    'group_by_sector',
    'generate_candidates',
    'PairScanner',
    'filter_reason',
    'select_top',
    'format_scan_report',
]
