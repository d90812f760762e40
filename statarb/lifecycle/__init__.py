"""
Trade Lifecycle Monitor

Drives each watchlist pair through its position lifecycle.

State machine:
    WATCHED → ENTERED → PARTIALLY_EXITED → CLOSED
                 ↓                 ↑
                 └───────→─────────┘

Core Responsibilities:
    1. Entry validation (signal, correlation, cointegration, half-life,
       timeframe confirmation, Hurst, reversion warning)
    2. Admission control (overlap, per-asset exposure, capacity)
    3. Exit rules (partial, final, stop, time stop, breakdown)
    4. Position health diagnostics
    5. Operator commands and REST API

Flow:
    Scanner → Watchlist → Lifecycle Monitor → Positions → History
"""

from statarb.lifecycle.config import (
    MonitorConfig,
    EntryConfig,
    ExitConfig,
    AdmissionConfig,
    CycleConfig,
)
from statarb.lifecycle.schemas import (
    Direction,
    PositionState,
    ExitReason,
    HealthStatus,
    ConflictType,
    WatchlistEntry,
    Position,
    HistoryRecord,
    HistoryStats,
    EntryValidation,
    ExitDecision,
    OverlapCheck,
    HealthReport,
    CycleResult,
    pair_symbol,
    split_pair,
    pair_members,
)
from statarb.lifecycle.rules import (
    direction_for,
    calculate_weights,
    validate_entry,
    dynamic_stop,
    check_exit_conditions,
)
from statarb.lifecycle.pnl import calculate_pnl, blended_pnl
from statarb.lifecycle.health import calculate_health, health_status
from statarb.lifecycle.admission import check_overlap, check_capacity, admit
from statarb.lifecycle.monitor import TradeMonitor, RescanGovernor
from statarb.lifecycle.commands import CommandHandler, CommandResult

__version__ = "1.0.0"

__all__ = [
    'MonitorConfig',
    'EntryConfig',
    'ExitConfig',
    'AdmissionConfig',
    'CycleConfig',
    'Direction',
    'PositionState',
    'ExitReason',
    'HealthStatus',
    'ConflictType',
    'WatchlistEntry',
    'Position',
    'HistoryRecord',
    'HistoryStats',
    'EntryValidation',
    'ExitDecision',
    'OverlapCheck',
    'HealthReport',
    'CycleResult',
    'pair_symbol',
    'split_pair',
    'pair_members',
    'direction_for',
    'calculate_weights',
    'validate_entry',
    'dynamic_stop',
    'check_exit_conditions',
    'calculate_pnl',
    'blended_pnl',
    'calculate_health',
    'health_status',
    'check_overlap',
    'check_capacity',
    'admit',
    'TradeMonitor',
    'RescanGovernor',
    'CommandHandler',
    'CommandResult',
]
