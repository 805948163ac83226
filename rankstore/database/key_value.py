"""
Backing key/value store interface.

The rank store only needs whole-value get and set by string key. Adapters map
their client library's failures onto the rank store's error kinds so the
persistence gateway can decide what to retry.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from rankstore.config import Config
from rankstore.utils.rank_exceptions import SizeExceededError


class KeyValueStore(ABC):
    """Abstract durable key/value store holding bytes values."""
    
    @abstractmethod
    async def get(self, key: str) -> Optional[bytes]:
        """Value stored under ``key`` or None when the key was never set."""
        pass
    
    @abstractmethod
    async def set(self, key: str, value: bytes):
        """Store ``value`` under ``key``, replacing any previous value."""
        pass
    
    async def close(self):
        """Release client resources."""
        pass


class MemoryKeyValueStore(KeyValueStore):
    """
    Process-local key/value store.
    
    Enforces the same value size limit as a hosted store and keeps simple
    counters so callers can observe read and write volume.
    """
    
    def __init__(self, max_value_size: int = None):
        self.max_value_size = max_value_size or Config.MAX_VALUE_SIZE
        self.data: Dict[str, bytes] = {}
        self.get_calls = 0
        self.set_calls = 0
        self.written_keys: List[str] = []
    
    async def get(self, key: str) -> Optional[bytes]:
        await asyncio.sleep(0)  # Yield like a network round trip
        self.get_calls += 1
        return self.data.get(key)
    
    async def set(self, key: str, value: bytes):
        await asyncio.sleep(0)
        if len(value) > self.max_value_size:
            raise SizeExceededError(key, len(value), self.max_value_size)
        self.set_calls += 1
        self.written_keys.append(key)
        self.data[key] = bytes(value)
    
    def __repr__(self):
        return f"<MemoryKeyValueStore(keys={len(self.data)}, sets={self.set_calls})>"
