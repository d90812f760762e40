"""
Redis Repository

Shared backend for running the monitor, scanner and API in separate
processes.

Layout (prefix ``statarb``):
    statarb:watchlist   hash  pair -> JSON entry
    statarb:positions   hash  pair -> JSON position
    statarb:history     list  JSON records, most recent first
    statarb:blacklist   hash  asset -> reason

Multi-key writes use MULTI/EXEC with WATCH on the positions hash so that
position checks and writes cannot interleave with another process.
"""

import json
import logging
from typing import Callable, Dict, Iterable, List, Optional

import redis

from statarb.errors import StateConflict, UpstreamUnavailable
from statarb.lifecycle.schemas import HistoryRecord, Position, WatchlistEntry, pair_members
from statarb.storage.base import PairRepository

LOG = logging.getLogger(__name__)


class RedisRepository(PairRepository):
    """Redis-backed repository"""

    def __init__(
        self,
        redis_url: Optional[str] = None,
        prefix: str = "statarb",
        client: Optional[redis.Redis] = None,
    ):
        """
        Initialize Redis repository.

        Args:
            redis_url: Redis connection URL
            prefix: Key prefix
            client: Pre-built client (tests)
        """
        self.redis_client = client or redis.from_url(redis_url or "redis://localhost:6379/0")
        self.watchlist_key = f"{prefix}:watchlist"
        self.positions_key = f"{prefix}:positions"
        self.history_key = f"{prefix}:history"
        self.blacklist_key = f"{prefix}:blacklist"

    def _call(self, action: str, fn: Callable):
        try:
            return fn()
        except redis.RedisError as e:
            raise UpstreamUnavailable(f"Redis {action} failed: {e}") from e

    def _transact(self, action: str, body: Callable[[redis.client.Pipeline], None]):
        """Run body under WATCH(positions) and retry on concurrent modification"""
        def run():
            with self.redis_client.pipeline() as pipe:
                while True:
                    try:
                        pipe.watch(self.positions_key)
                        body(pipe)
                        pipe.execute()
                        return
                    except redis.WatchError:
                        LOG.debug(f"Redis {action}: positions changed, retrying")
                        continue
        return self._call(action, run)

    # Watchlist

    def list_watchlist(self) -> List[WatchlistEntry]:
        raw = self._call("list_watchlist", lambda: self.redis_client.hvals(self.watchlist_key))
        return [WatchlistEntry.from_dict(json.loads(v)) for v in raw]

    def get_watchlist_entry(self, pair: str) -> Optional[WatchlistEntry]:
        raw = self._call("get_watchlist", lambda: self.redis_client.hget(self.watchlist_key, pair))
        return WatchlistEntry.from_dict(json.loads(raw)) if raw else None

    def upsert_watchlist(self, entries: Iterable[WatchlistEntry]) -> int:
        mapping = {e.pair: json.dumps(e.to_dict()) for e in entries}
        if not mapping:
            return 0

        def write():
            pipe = self.redis_client.pipeline(transaction=True)
            pipe.hset(self.watchlist_key, mapping=mapping)
            pipe.execute()

        self._call("upsert_watchlist", write)
        return len(mapping)

    def _delete_watchlist(self, pair: str) -> bool:
        return bool(self._call("delete_watchlist", lambda: self.redis_client.hdel(self.watchlist_key, pair)))

    def delete_watchlist(self, pair: str) -> bool:
        members = pair_members(pair)
        deleted = []

        def body(pipe):
            deleted.clear()
            for raw in pipe.hvals(self.positions_key):
                if Position.from_dict(json.loads(raw)).members == members:
                    pipe.unwatch()
                    return
            pipe.multi()
            pipe.hdel(self.watchlist_key, pair)
            deleted.append(pair)

        self._transact("delete_watchlist", body)
        return bool(deleted)

    # Positions

    def list_positions(self) -> List[Position]:
        raw = self._call("list_positions", lambda: self.redis_client.hvals(self.positions_key))
        return [Position.from_dict(json.loads(v)) for v in raw]

    def get_position(self, pair: str) -> Optional[Position]:
        raw = self._call("get_position", lambda: self.redis_client.hget(self.positions_key, pair))
        return Position.from_dict(json.loads(raw)) if raw else None

    def create_position(self, position: Position) -> Position:
        members = pair_members(position.pair)
        payload = json.dumps(position.to_dict())

        def body(pipe):
            for raw in pipe.hvals(self.positions_key):
                if Position.from_dict(json.loads(raw)).members == members:
                    pipe.unwatch()
                    raise StateConflict(f"{position.pair} already has an open position")
            pipe.multi()
            pipe.hset(self.positions_key, position.pair, payload)

        self._transact("create_position", body)
        return position

    def update_position(self, position: Position) -> Position:
        payload = json.dumps(position.to_dict())

        def body(pipe):
            if not pipe.hexists(self.positions_key, position.pair):
                pipe.unwatch()
                raise StateConflict(f"No open position for {position.pair}")
            pipe.multi()
            pipe.hset(self.positions_key, position.pair, payload)

        self._transact("update_position", body)
        return position

    def delete_position(self, pair: str) -> bool:
        return bool(self._call("delete_position", lambda: self.redis_client.hdel(self.positions_key, pair)))

    def close_position(self, pair: str, record: HistoryRecord) -> HistoryRecord:
        payload = json.dumps(record.to_dict())

        def body(pipe):
            if not pipe.hexists(self.positions_key, pair):
                pipe.unwatch()
                raise StateConflict(f"No open position for {pair}")
            pipe.multi()
            pipe.hdel(self.positions_key, pair)
            pipe.lpush(self.history_key, payload)

        self._transact("close_position", body)
        return record

    # History

    def append_history(self, record: HistoryRecord) -> HistoryRecord:
        payload = json.dumps(record.to_dict())
        self._call("append_history", lambda: self.redis_client.lpush(self.history_key, payload))
        return record

    def list_history(self, limit: Optional[int] = None) -> List[HistoryRecord]:
        if limit is not None and limit <= 0:
            return []
        end = -1 if limit is None else limit - 1
        raw = self._call("list_history", lambda: self.redis_client.lrange(self.history_key, 0, end))
        return [HistoryRecord.from_dict(json.loads(v)) for v in raw]

    # Blacklist

    def list_blacklist(self) -> Dict[str, str]:
        raw = self._call("list_blacklist", lambda: self.redis_client.hgetall(self.blacklist_key))
        return {_text(k): _text(v) for k, v in raw.items()}

    def add_blacklist(self, asset: str, reason: str = "") -> None:
        self._call("add_blacklist", lambda: self.redis_client.hset(self.blacklist_key, asset.upper(), reason))

    def close(self):
        self.redis_client.close()


def _text(value) -> str:
    return value.decode('utf-8') if isinstance(value, bytes) else value
