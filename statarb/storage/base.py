"""
Pair Repository Interface

Persistence collaborator with four collections: watchlist, positions,
history (append-only) and blacklist.

Unit-of-work guarantees:
    - ``upsert_watchlist`` writes the whole batch or raises
    - ``close_position`` deletes the position and appends its history
      record together or raises
    - a watchlist entry backing an open position is never deleted
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

from statarb.lifecycle.schemas import (
    HistoryRecord,
    HistoryStats,
    Position,
    WatchlistEntry,
    pair_members,
)


class PairRepository(ABC):
    """Abstract persistence backend"""

    # ========================================
    # WATCHLIST
    # ========================================

    @abstractmethod
    def list_watchlist(self) -> List[WatchlistEntry]:
        """All watchlist entries"""

    @abstractmethod
    def get_watchlist_entry(self, pair: str) -> Optional[WatchlistEntry]:
        """Entry by pair symbol, or None"""

    @abstractmethod
    def upsert_watchlist(self, entries: Iterable[WatchlistEntry]) -> int:
        """Insert or replace entries keyed by pair; returns count written"""

    @abstractmethod
    def _delete_watchlist(self, pair: str) -> bool:
        """Backend delete without the open-position guard"""

    def delete_watchlist(self, pair: str) -> bool:
        """
        Delete a watchlist entry.

        Returns:
            False if the pair backs an open position or does not exist
        """
        if self.has_open_position(pair):
            return False
        return self._delete_watchlist(pair)

    # ========================================
    # POSITIONS
    # ========================================

    @abstractmethod
    def list_positions(self) -> List[Position]:
        """All open positions"""

    @abstractmethod
    def get_position(self, pair: str) -> Optional[Position]:
        """Open position by pair symbol, or None"""

    @abstractmethod
    def create_position(self, position: Position) -> Position:
        """
        Persist a new position.

        Raises:
            StateConflict: The pair (in either order) already has a position
        """

    @abstractmethod
    def update_position(self, position: Position) -> Position:
        """
        Replace an existing position.

        Raises:
            StateConflict: No position exists for the pair
        """

    @abstractmethod
    def delete_position(self, pair: str) -> bool:
        """Remove a position without archiving it"""

    @abstractmethod
    def close_position(self, pair: str, record: HistoryRecord) -> HistoryRecord:
        """
        Delete the position and append its history record as one unit.

        Raises:
            StateConflict: No position exists for the pair
        """

    def has_open_position(self, pair: str) -> bool:
        """True if an open position exists for the unordered pair"""
        members = pair_members(pair)
        return any(p.members == members for p in self.list_positions())

    # ========================================
    # HISTORY
    # ========================================

    @abstractmethod
    def append_history(self, record: HistoryRecord) -> HistoryRecord:
        """Append a closed-trade record"""

    @abstractmethod
    def list_history(self, limit: Optional[int] = None) -> List[HistoryRecord]:
        """Closed trades, most recent first"""

    def history_stats(self) -> HistoryStats:
        return HistoryStats.from_records(self.list_history())

    # ========================================
    # BLACKLIST
    # ========================================

    @abstractmethod
    def list_blacklist(self) -> Dict[str, str]:
        """Blacklisted asset -> reason"""

    @abstractmethod
    def add_blacklist(self, asset: str, reason: str = "") -> None:
        """Blacklist an asset"""

    def close(self):
        """Release backend resources"""
