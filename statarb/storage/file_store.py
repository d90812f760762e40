"""
JSON File Repository

Keeps the four collections in memory and persists them to a single JSON
document after every mutation. Writes go to a temporary file which is
then atomically renamed over the state file, so a crash never leaves a
half-written document behind.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from statarb.errors import UpstreamUnavailable
from statarb.lifecycle.schemas import HistoryRecord, Position, WatchlistEntry
from statarb.storage.memory import InMemoryRepository

LOG = logging.getLogger(__name__)


class JsonFileRepository(InMemoryRepository):
    """File-backed repository"""

    def __init__(self, state_file_path: Optional[str] = None):
        """
        Initialize file repository.

        Args:
            state_file_path: Path to the JSON state file
                (default: logs/statarb_state.json)
        """
        super().__init__()
        self.state_file_path = Path(state_file_path or "logs/statarb_state.json")
        self.state_file_path.parent.mkdir(parents=True, exist_ok=True)
        self._load()

    def _load(self):
        if not self.state_file_path.exists():
            LOG.info(f"No existing state at {self.state_file_path}, starting empty")
            return

        try:
            with open(self.state_file_path, 'r') as f:
                state = json.load(f)
        except (OSError, ValueError) as e:
            raise UpstreamUnavailable(f"Cannot read state file {self.state_file_path}: {e}") from e

        self._watchlist = {
            d['pair']: WatchlistEntry.from_dict(d) for d in state.get('watchlist', [])
        }
        self._positions = {
            d['pair']: Position.from_dict(d) for d in state.get('positions', [])
        }
        self._history = [HistoryRecord.from_dict(d) for d in state.get('history', [])]
        self._blacklist = dict(state.get('blacklist', {}))

        LOG.info(f"State loaded from {self.state_file_path}: "
                 f"{len(self._watchlist)} watchlist, {len(self._positions)} positions, "
                 f"{len(self._history)} history")

    def _changed(self):
        state = {
            'watchlist': [e.to_dict() for e in self._watchlist.values()],
            'positions': [p.to_dict() for p in self._positions.values()],
            'history': [r.to_dict() for r in self._history],
            'blacklist': dict(self._blacklist),
            'last_saved': datetime.now(timezone.utc).isoformat(),
        }

        temp_path = self.state_file_path.with_suffix('.tmp')
        try:
            with open(temp_path, 'w') as f:
                json.dump(state, f, indent=2)
            temp_path.replace(self.state_file_path)
        except OSError as e:
            raise UpstreamUnavailable(f"Cannot write state file {self.state_file_path}: {e}") from e
