"""
Redis-backed key/value store.

Uses ``redis.asyncio`` GET/SET on plain string keys. Connection and timeout
failures surface as BackingStoreUnavailableError so they are retried;
other server errors are permanent.
"""

import logging
from typing import Optional

from redis import exceptions as redis_errors

from rankstore.config import Config
from rankstore.database.key_value import KeyValueStore
from rankstore.utils.rank_exceptions import (
    BackingStoreError, BackingStoreUnavailableError, SizeExceededError, ThrottledError
)
from rankstore.utils.redis_utils import RedisUtils

logger = logging.getLogger(__name__)


class RedisKeyValueStore(KeyValueStore):
    """Key/value store on a redis.asyncio client."""
    
    def __init__(self, client, max_value_size: int = None):
        self.client = client
        self.max_value_size = max_value_size or Config.MAX_VALUE_SIZE
    
    @classmethod
    def from_url(cls, redis_url: str, max_value_size: int = None) -> 'RedisKeyValueStore':
        client = RedisUtils.create_redis_client(redis_url)
        if client is None:
            raise BackingStoreUnavailableError("connect", "Redis URL failed security validation")
        logger.info("Created Redis client for rank store")
        return cls(client, max_value_size)
    
    async def get(self, key: str) -> Optional[bytes]:
        try:
            return await self.client.get(key)
        except redis_errors.BusyLoadingError as e:
            raise ThrottledError(f"get '{key}'", str(e)) from e
        except (redis_errors.ConnectionError, redis_errors.TimeoutError) as e:
            raise BackingStoreUnavailableError(f"get '{key}'", str(e)) from e
        except redis_errors.RedisError as e:
            raise BackingStoreError(f"get '{key}'", str(e)) from e
    
    async def set(self, key: str, value: bytes):
        if len(value) > self.max_value_size:
            raise SizeExceededError(key, len(value), self.max_value_size)
        try:
            await self.client.set(key, value)
        except redis_errors.BusyLoadingError as e:
            raise ThrottledError(f"set '{key}'", str(e)) from e
        except (redis_errors.ConnectionError, redis_errors.TimeoutError) as e:
            raise BackingStoreUnavailableError(f"set '{key}'", str(e)) from e
        except redis_errors.RedisError as e:
            raise BackingStoreError(f"set '{key}'", str(e)) from e
    
    async def close(self):
        await self.client.aclose()
