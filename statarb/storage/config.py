"""
Storage Configuration
"""

from dataclasses import dataclass, asdict
import os
from typing import Optional


@dataclass
class StorageConfig:
    """Persistence backend selection"""
    storage_type: str = "file"  # memory, file, redis
    state_file_path: str = "logs/statarb_state.json"
    redis_url: Optional[str] = None
    redis_prefix: str = "statarb"

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_env(cls) -> 'StorageConfig':
        config = cls()
        config.storage_type = os.environ.get('STATARB_STORAGE', config.storage_type)
        config.state_file_path = os.environ.get('STATARB_STATE_FILE', config.state_file_path)
        config.redis_url = os.environ.get('REDIS_URL', config.redis_url)
        return config
