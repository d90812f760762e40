"""
Command Interface

Operator commands (open, close, partial, blacklist, status, ...) over the
monitor primitives. Commands never raise; every outcome is a
``CommandResult``.

A forced open applies admission control and the open-position check but
skips the statistical entry validation.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from statarb.errors import StatArbError, StateConflict
from statarb.lifecycle.monitor import TradeMonitor
from statarb.lifecycle.schemas import (
    Direction,
    ExitReason,
    WatchlistEntry,
    pair_members,
    pair_symbol,
    split_pair,
)

LOG = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of an operator command"""
    ok: bool
    message: str
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {'ok': self.ok, 'message': self.message, 'data': self.data}


def _failure(action: str, error: Exception) -> CommandResult:
    data = {'error': type(error).__name__}
    if isinstance(error, StateConflict) and error.reason:
        data['reason'] = error.reason
    LOG.warning(f"{action} failed: {error}")
    return CommandResult(ok=False, message=f"{action} failed: {error}", data=data)


class CommandHandler:
    """Operator commands against a TradeMonitor and its repository"""

    def __init__(self, monitor: TradeMonitor):
        self.monitor = monitor
        self.repository = monitor.repository

    def _watchlist_entry(self, asset1: str, asset2: str) -> Optional[WatchlistEntry]:
        members = frozenset((asset1, asset2))
        for entry in self.repository.list_watchlist():
            if entry.members == members:
                return entry
        return None

    # ========================================
    # TRADES
    # ========================================

    def open(
        self,
        pair: str,
        direction: Optional[Union[Direction, str]] = None,
        size: float = 1.0,
    ) -> CommandResult:
        """
        Force an entry on a pair.

        Args:
            pair: "BASE/QUOTE"
            direction: "long"/"short" for the first leg; from the z sign when None
            size: Position size multiplier

        Returns:
            CommandResult with the new position under data['position']
        """
        try:
            asset1, asset2 = split_pair(pair)
            if direction is not None:
                direction = Direction(str(getattr(direction, 'value', direction)).lower())
            if size <= 0:
                raise ValueError(f"Size must be positive, got {size}")

            blacklist = self.repository.list_blacklist()
            blocked = [a for a in (asset1, asset2) if a in blacklist]
            if blocked:
                return CommandResult(
                    ok=False,
                    message=f"{', '.join(blocked)} blacklisted",
                    data={'reason': 'blacklisted'},
                )

            entry = self._watchlist_entry(asset1, asset2)
            if entry is None:
                entry = WatchlistEntry(
                    pair=pair_symbol(asset1, asset2),
                    asset1=asset1,
                    asset2=asset2,
                    entry_threshold=self.monitor.config.entry.default_entry_threshold,
                    added_manually=True,
                )
            elif direction is not None and entry.asset1 != asset1:
                # Direction refers to the first leg as given, not as stored
                direction = Direction.SHORT if direction == Direction.LONG else Direction.LONG

            _, evaluation = self.monitor.evaluate_pair(
                entry.asset1, entry.asset2, entry.entry_threshold
            )
            position = self.monitor.enter_position(
                entry, evaluation, direction, source="manual", size=size
            )
        except (StatArbError, ValueError) as e:
            return _failure(f"Open {pair}", e)

        if entry.initial_beta is None:
            entry.initial_beta = evaluation.reactive.beta
        entry.update_metrics(evaluation)
        try:
            self.repository.upsert_watchlist([entry])
        except StatArbError as e:
            LOG.error(f"Watchlist entry for {entry.pair} not persisted: {e}")

        return CommandResult(
            ok=True,
            message=f"Opened {position.pair}: long {position.long_asset} / short {position.short_asset}",
            data={'position': position.to_dict()},
        )

    def close(self, pair: str) -> CommandResult:
        """Manual exit at current prices"""
        try:
            pair_members(pair)
            record = self.monitor.exit_position(pair, ExitReason.MANUAL)
        except (StatArbError, ValueError) as e:
            return _failure(f"Close {pair}", e)

        return CommandResult(
            ok=True,
            message=f"Closed {record.pair}: PnL {record.total_pnl:+.2f}%",
            data={'record': record.to_dict()},
        )

    def partial(self, pair: str) -> CommandResult:
        """Forced partial exit"""
        try:
            pair_members(pair)
            position = self.monitor.partial_exit(pair)
        except (StatArbError, ValueError) as e:
            return _failure(f"Partial {pair}", e)

        return CommandResult(
            ok=True,
            message=f"Partial exit on {position.pair} at {position.partial_exit_pnl:+.2f}%",
            data={'position': position.to_dict()},
        )

    def blacklist(self, asset: str, reason: str = "") -> CommandResult:
        asset = asset.strip().upper()
        if not asset:
            return CommandResult(ok=False, message="Asset required")
        try:
            self.repository.add_blacklist(asset, reason)
        except StatArbError as e:
            return _failure(f"Blacklist {asset}", e)
        return CommandResult(ok=True, message=f"{asset} blacklisted", data={'asset': asset, 'reason': reason})

    # ========================================
    # QUERIES
    # ========================================

    def status(self) -> CommandResult:
        try:
            status = self.monitor.status()
            status['history'] = self.repository.history_stats().to_dict()
            status['watchlist_size'] = len(self.repository.list_watchlist())
        except StatArbError as e:
            return _failure("Status", e)
        return CommandResult(
            ok=True,
            message=f"{status['open_positions']}/{status['max_positions']} positions open",
            data=status,
        )

    def trades(self) -> CommandResult:
        try:
            positions = self.repository.list_positions()
        except StatArbError as e:
            return _failure("Trades", e)
        return CommandResult(
            ok=True,
            message=f"{len(positions)} open positions",
            data={'positions': [p.to_dict() for p in positions]},
        )

    def history(self, limit: int = 10) -> CommandResult:
        try:
            records = self.repository.list_history(limit)
            stats = self.repository.history_stats()
        except StatArbError as e:
            return _failure("History", e)
        return CommandResult(
            ok=True,
            message=f"{stats.total_trades} closed trades, win rate {stats.win_rate:.0f}%",
            data={'records': [r.to_dict() for r in records], 'stats': stats.to_dict()},
        )

    def watchlist(self) -> CommandResult:
        try:
            entries = sorted(self.repository.list_watchlist(), key=lambda e: e.conviction, reverse=True)
        except StatArbError as e:
            return _failure("Watchlist", e)
        return CommandResult(
            ok=True,
            message=f"{len(entries)} watchlist pairs, {sum(e.is_ready for e in entries)} ready",
            data={'entries': [e.to_dict() for e in entries]},
        )
