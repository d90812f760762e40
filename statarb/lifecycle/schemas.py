"""
Lifecycle Schemas

Watchlist entries, positions, history records and the decision types
produced by the lifecycle rules.
"""

from dataclasses import dataclass, field, fields, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from statarb.fitness_engine.schemas import PairEvaluation


class Direction(str, Enum):
    """Direction of the first leg"""
    LONG = "long"
    SHORT = "short"


class PositionState(str, Enum):
    """
    Position state machine:
        WATCHED → ENTERED → PARTIALLY_EXITED → CLOSED
                     ↓                 ↑
                     └───────→─────────┘
    """
    WATCHED = "WATCHED"
    ENTERED = "ENTERED"
    PARTIALLY_EXITED = "PARTIALLY_EXITED"
    CLOSED = "CLOSED"


class ExitReason(str, Enum):
    PARTIAL_REVERSION = "PARTIAL_REVERSION"
    PARTIAL_TP = "PARTIAL_TP"
    FINAL_TP = "FINAL_TP"
    TARGET = "TARGET"
    STOP_LOSS = "STOP_LOSS"
    TIME_STOP = "TIME_STOP"
    BREAKDOWN = "BREAKDOWN"
    MANUAL = "MANUAL"


class HealthStatus(str, Enum):
    STRONG = "STRONG"
    OK = "OK"
    WEAK = "WEAK"
    BROKEN = "BROKEN"


class ConflictType(str, Enum):
    """Admission rejection reasons"""
    ACTIVE_TRADE = "active_trade"
    LONG_CONFLICT = "long_conflict"
    SHORT_CONFLICT = "short_conflict"
    MAX_EXPOSURE = "max_exposure"
    CAPACITY = "capacity"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def pair_symbol(asset1: str, asset2: str) -> str:
    return f"{asset1}/{asset2}"


def split_pair(pair: str) -> Tuple[str, str]:
    """'BTC/ETH' -> ('BTC', 'ETH')"""
    parts = pair.split('/')
    if len(parts) != 2 or not all(parts):
        raise ValueError(f"Invalid pair symbol: {pair!r}")
    return parts[0].upper(), parts[1].upper()


def pair_members(pair: str) -> FrozenSet[str]:
    """Unordered identity of a pair symbol"""
    return frozenset(split_pair(pair))


def _dt(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_dt(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


# ========================================
# WATCHLIST
# ========================================

@dataclass
class WatchlistEntry:
    """
    Candidate pair published by the scanner and refreshed by the monitor.

    ``initial_beta`` records the hedge ratio when the pair was first
    discovered and is never overwritten by refreshes.
    """
    pair: str
    asset1: str
    asset2: str
    sector: str = ""
    direction: Direction = Direction.LONG
    entry_threshold: float = 2.0
    exit_threshold: float = 0.5
    max_historical_z: float = 3.0
    initial_beta: Optional[float] = None

    # Latest fitness snapshot
    correlation: float = 0.0
    beta: float = 0.0
    z_score: float = 0.0
    half_life: Optional[float] = None
    hurst: Optional[float] = None
    hurst_classification: str = "INSUFFICIENT_DATA"
    is_cointegrated: bool = False
    mean_reversion_rate: float = 0.0
    conviction: float = 0.0
    conviction_breakdown: Dict[str, float] = field(default_factory=dict)
    beta_drift: Optional[float] = None
    quality_score: float = 0.0
    regime: Optional[str] = None

    signal_strength: float = 0.0
    is_ready: bool = False
    reversion_warning: bool = False
    reversion_rate: Optional[float] = None
    funding_spread: Optional[float] = None

    added_manually: bool = False
    last_scan: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def members(self) -> FrozenSet[str]:
        return frozenset((self.asset1, self.asset2))

    def update_metrics(self, evaluation: PairEvaluation, now: Optional[datetime] = None):
        """
        Refresh the fitness snapshot in place.

        Discovery fields (direction, thresholds, initial beta, reversion
        warning) are left untouched.
        """
        reactive = evaluation.reactive
        self.correlation = reactive.correlation
        self.beta = reactive.beta
        self.z_score = reactive.z_score
        self.half_life = reactive.half_life.or_none()
        self.hurst = evaluation.hurst.metric.or_none()
        self.hurst_classification = evaluation.hurst.classification.value
        self.is_cointegrated = evaluation.structural.is_cointegrated
        self.mean_reversion_rate = reactive.mean_reversion_rate
        self.conviction = evaluation.conviction.score
        self.conviction_breakdown = dict(evaluation.conviction.breakdown)
        self.regime = evaluation.regime.regime.value

        if self.initial_beta:
            self.beta_drift = abs(self.beta - self.initial_beta) / abs(self.initial_beta)
        else:
            self.beta_drift = evaluation.beta_drift

        self.signal_strength = (
            min(abs(self.z_score) / self.entry_threshold, 1.0) if self.entry_threshold > 0 else 0.0
        )
        self.is_ready = abs(self.z_score) >= self.entry_threshold
        self.updated_at = now or utcnow()

    def to_dict(self) -> dict:
        data = asdict(self)
        data['direction'] = self.direction.value
        data['last_scan'] = _dt(self.last_scan)
        data['updated_at'] = _dt(self.updated_at)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'WatchlistEntry':
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        values['direction'] = Direction(values.get('direction', Direction.LONG.value))
        values['last_scan'] = _parse_dt(values.get('last_scan'))
        values['updated_at'] = _parse_dt(values.get('updated_at'))
        return cls(**values)


# ========================================
# POSITIONS
# ========================================

@dataclass
class Position:
    """
    Open pair position.

    Entry fields are frozen when the position is opened; running fields are
    recomputed by the monitor every cycle. Weights are fractions summing
    to 1.
    """
    pair: str
    asset1: str
    asset2: str
    direction: Direction
    long_asset: str
    short_asset: str
    long_weight: float
    short_weight: float
    long_entry_price: float
    short_entry_price: float
    entry_z_score: float
    entry_threshold: float
    entry_time: datetime

    sector: str = ""
    size: float = 1.0
    half_life: Optional[float] = None
    max_historical_z: float = 3.0
    entry_correlation: Optional[float] = None
    entry_beta: Optional[float] = None
    entry_hurst: Optional[float] = None
    source: str = "bot"
    state: PositionState = PositionState.ENTERED

    # Running fields
    current_z: Optional[float] = None
    current_pnl: float = 0.0
    current_correlation: Optional[float] = None
    current_half_life: Optional[float] = None
    current_hurst: Optional[float] = None
    current_beta: Optional[float] = None
    beta_drift: Optional[float] = None
    max_beta_drift: float = 0.0
    health_score: Optional[int] = None
    health_status: Optional[str] = None
    net_funding_8h: Optional[float] = None  # Percent received per 8h; None if unknown
    last_checked: Optional[datetime] = None

    # Partial exit
    partial_exit_taken: bool = False
    partial_exit_pnl: Optional[float] = None
    partial_exit_time: Optional[datetime] = None

    @property
    def members(self) -> FrozenSet[str]:
        return frozenset((self.asset1, self.asset2))

    @property
    def long_is_asset1(self) -> bool:
        return self.long_asset == self.asset1

    def leg_prices(self, price1: float, price2: float) -> Tuple[float, float]:
        """(long leg price, short leg price) from asset1/asset2 prices"""
        if self.long_is_asset1:
            return price1, price2
        return price2, price1

    def days_in_trade(self, now: Optional[datetime] = None) -> float:
        now = now or utcnow()
        return (now - self.entry_time).total_seconds() / 86400.0

    def to_dict(self) -> dict:
        data = asdict(self)
        data['direction'] = self.direction.value
        data['state'] = self.state.value
        for key in ('entry_time', 'last_checked', 'partial_exit_time'):
            data[key] = _dt(getattr(self, key))
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'Position':
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        values['direction'] = Direction(values['direction'])
        values['state'] = PositionState(values.get('state', PositionState.ENTERED.value))
        for key in ('entry_time', 'last_checked', 'partial_exit_time'):
            values[key] = _parse_dt(values.get(key))
        return cls(**values)


@dataclass(frozen=True)
class HistoryRecord:
    """Immutable archive of a closed position"""
    pair: str
    asset1: str
    asset2: str
    sector: str
    direction: Direction
    long_asset: str
    short_asset: str
    long_weight: float
    short_weight: float
    long_entry_price: float
    short_entry_price: float
    long_exit_price: float
    short_exit_price: float
    entry_time: datetime
    entry_z_score: float
    entry_threshold: float
    half_life: Optional[float]
    partial_exit_taken: bool
    partial_exit_pnl: Optional[float]
    exit_time: datetime
    exit_reason: ExitReason
    exit_z_score: Optional[float]
    exit_hurst: Optional[float]
    total_pnl: float
    days_in_trade: float
    source: str = "bot"
    size: float = 1.0

    @classmethod
    def from_position(
        cls,
        position: Position,
        exit_reason: ExitReason,
        total_pnl: float,
        long_exit_price: float,
        short_exit_price: float,
        exit_z_score: Optional[float],
        exit_hurst: Optional[float],
        exit_time: Optional[datetime] = None,
    ) -> 'HistoryRecord':
        exit_time = exit_time or utcnow()
        return cls(
            pair=position.pair,
            asset1=position.asset1,
            asset2=position.asset2,
            sector=position.sector,
            direction=position.direction,
            long_asset=position.long_asset,
            short_asset=position.short_asset,
            long_weight=position.long_weight,
            short_weight=position.short_weight,
            long_entry_price=position.long_entry_price,
            short_entry_price=position.short_entry_price,
            long_exit_price=long_exit_price,
            short_exit_price=short_exit_price,
            entry_time=position.entry_time,
            entry_z_score=position.entry_z_score,
            entry_threshold=position.entry_threshold,
            half_life=position.half_life,
            partial_exit_taken=position.partial_exit_taken,
            partial_exit_pnl=position.partial_exit_pnl,
            exit_time=exit_time,
            exit_reason=exit_reason,
            exit_z_score=exit_z_score,
            exit_hurst=exit_hurst,
            total_pnl=total_pnl,
            days_in_trade=position.days_in_trade(exit_time),
            source=position.source,
            size=position.size,
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data['direction'] = self.direction.value
        data['exit_reason'] = self.exit_reason.value
        data['entry_time'] = _dt(self.entry_time)
        data['exit_time'] = _dt(self.exit_time)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'HistoryRecord':
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        values['direction'] = Direction(values['direction'])
        values['exit_reason'] = ExitReason(values['exit_reason'])
        values['entry_time'] = _parse_dt(values['entry_time'])
        values['exit_time'] = _parse_dt(values['exit_time'])
        return cls(**values)


@dataclass
class HistoryStats:
    """Aggregate statistics over closed trades"""
    total_trades: int = 0
    wins: int = 0
    losses: int = 0
    total_pnl: float = 0.0
    win_rate: float = 0.0
    avg_pnl: float = 0.0

    @classmethod
    def from_records(cls, records: List[HistoryRecord]) -> 'HistoryStats':
        if not records:
            return cls()
        total = len(records)
        wins = sum(1 for r in records if r.total_pnl > 0)
        total_pnl = sum(r.total_pnl for r in records)
        return cls(
            total_trades=total,
            wins=wins,
            losses=total - wins,
            total_pnl=total_pnl,
            win_rate=wins / total * 100.0,
            avg_pnl=total_pnl / total,
        )

    def to_dict(self) -> dict:
        return asdict(self)


# ========================================
# DECISIONS
# ========================================

@dataclass
class EntryValidation:
    """Result of entry validation for a watchlist pair"""
    valid: bool
    reason: str  # ok, no_signal, low_corr, not_coint, slow_reversion, conflicting_tf, ...
    is_ready: bool
    checks: Dict[str, bool] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            'valid': self.valid,
            'reason': self.reason,
            'is_ready': self.is_ready,
            'checks': dict(self.checks),
        }


@dataclass
class ExitDecision:
    """Exit decision for one position in one cycle"""
    should_exit: bool
    reason: Optional[ExitReason] = None
    is_partial: bool = False
    exit_size: float = 0.0
    message: str = ""

    @classmethod
    def hold(cls) -> 'ExitDecision':
        return cls(should_exit=False)

    def to_dict(self) -> dict:
        return {
            'should_exit': self.should_exit,
            'reason': self.reason.value if self.reason else None,
            'is_partial': self.is_partial,
            'exit_size': self.exit_size,
            'message': self.message,
        }


@dataclass
class OverlapCheck:
    """Admission result"""
    allowed: bool
    conflict_type: Optional[ConflictType] = None
    conflict_asset: Optional[str] = None
    message: str = ""

    def to_dict(self) -> dict:
        return {
            'allowed': self.allowed,
            'conflict_type': self.conflict_type.value if self.conflict_type else None,
            'conflict_asset': self.conflict_asset,
            'message': self.message,
        }


@dataclass
class HealthReport:
    """Diagnostic health of an open position"""
    score: int
    status: HealthStatus
    signals: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'score': self.score,
            'status': self.status.value,
            'signals': list(self.signals),
        }


@dataclass
class CycleResult:
    """Outcome of one monitor cycle"""
    started_at: datetime = field(default_factory=utcnow)
    finished_at: Optional[datetime] = None
    positions_checked: int = 0
    watchlist_checked: int = 0
    entries: List[str] = field(default_factory=list)
    partial_exits: List[str] = field(default_factory=list)
    exits: List[Dict[str, Any]] = field(default_factory=list)
    skipped: Dict[str, str] = field(default_factory=dict)
    approaching: List[Dict[str, Any]] = field(default_factory=list)
    rescan_requested: bool = False
    timed_out: bool = False
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'started_at': _dt(self.started_at),
            'finished_at': _dt(self.finished_at),
            'positions_checked': self.positions_checked,
            'watchlist_checked': self.watchlist_checked,
            'entries': list(self.entries),
            'partial_exits': list(self.partial_exits),
            'exits': list(self.exits),
            'skipped': dict(self.skipped),
            'approaching': list(self.approaching),
            'rescan_requested': self.rescan_requested,
            'timed_out': self.timed_out,
            'error': self.error,
        }
