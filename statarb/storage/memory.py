"""
In-Memory Repository

Process-local backend used for tests, dry runs and as the base for the
JSON file backend.
"""

import copy
import logging
import threading
from typing import Dict, Iterable, List, Optional

from statarb.errors import StateConflict
from statarb.lifecycle.schemas import HistoryRecord, Position, WatchlistEntry, pair_members
from statarb.storage.base import PairRepository

LOG = logging.getLogger(__name__)


class InMemoryRepository(PairRepository):
    """Thread-safe dictionary backend; returns copies, never live objects"""

    def __init__(self):
        self._lock = threading.RLock()
        self._watchlist: Dict[str, WatchlistEntry] = {}
        self._positions: Dict[str, Position] = {}
        self._history: List[HistoryRecord] = []
        self._blacklist: Dict[str, str] = {}

    def _changed(self):
        """Hook called after every successful mutation"""

    # Watchlist

    def list_watchlist(self) -> List[WatchlistEntry]:
        with self._lock:
            return [copy.deepcopy(e) for e in self._watchlist.values()]

    def get_watchlist_entry(self, pair: str) -> Optional[WatchlistEntry]:
        with self._lock:
            entry = self._watchlist.get(pair)
            return copy.deepcopy(entry) if entry else None

    def upsert_watchlist(self, entries: Iterable[WatchlistEntry]) -> int:
        batch = [copy.deepcopy(e) for e in entries]
        with self._lock:
            previous = dict(self._watchlist)
            for entry in batch:
                self._watchlist[entry.pair] = entry
            try:
                self._changed()
            except Exception:
                self._watchlist = previous
                raise
            return len(batch)

    def _delete_watchlist(self, pair: str) -> bool:
        with self._lock:
            if pair not in self._watchlist:
                return False
            previous = self._watchlist.pop(pair)
            try:
                self._changed()
            except Exception:
                self._watchlist[pair] = previous
                raise
            return True

    def delete_watchlist(self, pair: str) -> bool:
        with self._lock:
            return super().delete_watchlist(pair)

    # Positions

    def list_positions(self) -> List[Position]:
        with self._lock:
            return [copy.deepcopy(p) for p in self._positions.values()]

    def get_position(self, pair: str) -> Optional[Position]:
        with self._lock:
            position = self._positions.get(pair)
            return copy.deepcopy(position) if position else None

    def create_position(self, position: Position) -> Position:
        with self._lock:
            members = pair_members(position.pair)
            if any(p.members == members for p in self._positions.values()):
                raise StateConflict(f"{position.pair} already has an open position")
            self._positions[position.pair] = copy.deepcopy(position)
            try:
                self._changed()
            except Exception:
                del self._positions[position.pair]
                raise
            return position

    def update_position(self, position: Position) -> Position:
        with self._lock:
            if position.pair not in self._positions:
                raise StateConflict(f"No open position for {position.pair}")
            previous = self._positions[position.pair]
            self._positions[position.pair] = copy.deepcopy(position)
            try:
                self._changed()
            except Exception:
                self._positions[position.pair] = previous
                raise
            return position

    def delete_position(self, pair: str) -> bool:
        with self._lock:
            if pair not in self._positions:
                return False
            previous = self._positions.pop(pair)
            try:
                self._changed()
            except Exception:
                self._positions[pair] = previous
                raise
            return True

    def close_position(self, pair: str, record: HistoryRecord) -> HistoryRecord:
        with self._lock:
            if pair not in self._positions:
                raise StateConflict(f"No open position for {pair}")
            previous = self._positions.pop(pair)
            self._history.append(record)
            try:
                self._changed()
            except Exception:
                self._history.pop()
                self._positions[pair] = previous
                raise
            return record

    # History

    def append_history(self, record: HistoryRecord) -> HistoryRecord:
        with self._lock:
            self._history.append(record)
            try:
                self._changed()
            except Exception:
                self._history.pop()
                raise
            return record

    def list_history(self, limit: Optional[int] = None) -> List[HistoryRecord]:
        with self._lock:
            records = list(reversed(self._history))
        return records if limit is None else records[:max(0, limit)]

    # Blacklist

    def list_blacklist(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._blacklist)

    def add_blacklist(self, asset: str, reason: str = "") -> None:
        key = asset.upper()
        with self._lock:
            previous = self._blacklist.get(key)
            self._blacklist[key] = reason
            try:
                self._changed()
            except Exception:
                if previous is None:
                    self._blacklist.pop(key, None)
                else:
                    self._blacklist[key] = previous
                raise
