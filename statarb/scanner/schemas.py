"""
Scanner Schemas
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from statarb.fitness_engine.schemas import DivergenceProfile, PairEvaluation
from statarb.lifecycle.schemas import WatchlistEntry, pair_symbol
from statarb.market_data.schemas import AssetContext, PriceWindows


@dataclass
class CandidatePair:
    """Pair of liquid assets considered by one scan"""
    sector: str
    asset1: AssetContext
    asset2: AssetContext
    cross_sector: bool = False

    @property
    def pair(self) -> str:
        return pair_symbol(self.asset1.symbol, self.asset2.symbol)


@dataclass
class ScoredPair:
    """Candidate that passed the statistical filters"""
    candidate: CandidatePair
    windows: PriceWindows
    evaluation: PairEvaluation
    profile: Optional[DivergenceProfile] = None

    @property
    def pair(self) -> str:
        return self.candidate.pair

    @property
    def conviction(self) -> float:
        return self.evaluation.conviction.score


@dataclass
class ScanResult:
    """Outcome of one discovery scan"""
    universe_size: int = 0
    liquid_assets: int = 0
    candidates: int = 0
    evaluated: int = 0
    passed: int = 0
    selected: List[WatchlistEntry] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    kept_for_positions: List[str] = field(default_factory=list)
    skipped: Dict[str, str] = field(default_factory=dict)
    unmapped: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'universe_size': self.universe_size,
            'liquid_assets': self.liquid_assets,
            'candidates': self.candidates,
            'evaluated': self.evaluated,
            'passed': self.passed,
            'selected': [e.to_dict() for e in self.selected],
            'removed': list(self.removed),
            'kept_for_positions': list(self.kept_for_positions),
            'skipped': dict(self.skipped),
            'unmapped': list(self.unmapped),
            'duration_seconds': self.duration_seconds,
            'error': self.error,
        }
