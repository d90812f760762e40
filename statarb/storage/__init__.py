"""
Storage Layer

Persistence collaborator for watchlist, positions, history and blacklist.
Backends: in-memory, JSON file (atomic writes) and Redis.
"""

from typing import Optional

from statarb.storage.base import PairRepository
from statarb.storage.config import StorageConfig
from statarb.storage.memory import InMemoryRepository
from statarb.storage.file_store import JsonFileRepository


def create_repository(config: Optional[StorageConfig] = None) -> PairRepository:
    """
    Build a repository for the configured backend.

    Raises:
        ValueError: Unknown storage type
    """
    config = config or StorageConfig()

    if config.storage_type == "memory":
        return InMemoryRepository()
    if config.storage_type == "file":
        return JsonFileRepository(config.state_file_path)
    if config.storage_type == "redis":
        from statarb.storage.redis_store import RedisRepository
        return RedisRepository(config.redis_url, prefix=config.redis_prefix)

    raise ValueError(
        f"Invalid storage_type: {config.storage_type}. Must be 'memory', 'file' or 'redis'"
    )


__all__ = [
    'PairRepository',
    'StorageConfig',
    'InMemoryRepository',
    'JsonFileRepository',
    'create_repository',
]
