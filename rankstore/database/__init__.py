"""
Backing key/value store adapters for the rank store.
"""

from typing import Optional

from rankstore.config import Config

from .key_value import KeyValueStore, MemoryKeyValueStore


def create_backing_store(url: Optional[str] = None, max_value_size: int = None) -> KeyValueStore:
    """
    Build a backing store from a URL.
    
    ``memory://`` gives a process-local store, ``redis://`` and ``rediss://``
    a Redis store, and anything else is treated as a SQLAlchemy database URL.
    """
    url = url or Config.BACKING_STORE_URL
    
    if url.startswith('memory://'):
        return MemoryKeyValueStore(max_value_size)
    if url.startswith(('redis://', 'rediss://')):
        from .redis_store import RedisKeyValueStore
        return RedisKeyValueStore.from_url(url, max_value_size)
    
    from .sql_store import SqlKeyValueStore
    return SqlKeyValueStore(url, max_value_size)


__all__ = ['KeyValueStore', 'MemoryKeyValueStore', 'create_backing_store']
