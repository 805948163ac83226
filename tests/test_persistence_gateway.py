#!/usr/bin/env python3
"""
Tests for the persistence gateway: epoch keys, retries and bucket writes.
"""

import asyncio
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import pytest

from rankstore.database import MemoryKeyValueStore
from rankstore.services.persistence_gateway import PersistenceGateway, StoreMeta
from rankstore.utils.rank_exceptions import (
    BackingStoreUnavailableError, CorruptPayloadError, SizeExceededError, ThrottledError
)


class FlakyStore(MemoryKeyValueStore):
    """Memory store that fails a configurable number of times per key."""
    
    def __init__(self, failures=None, error=BackingStoreUnavailableError):
        super().__init__()
        self.failures = dict(failures or {})
        self.error = error
        self.attempts = []
    
    async def set(self, key, value):
        self.attempts.append(key)
        remaining = self.failures.get(key, 0)
        if remaining:
            self.failures[key] = remaining - 1
            raise self.error(f"set '{key}'", "simulated outage")
        await super().set(key, value)


def make_gateway(store, max_retries=3):
    return PersistenceGateway(store, max_retries=max_retries, base_delay=0)


def test_key_layout():
    assert PersistenceGateway.bucket_key("board", 2, 5) == "board:2:5"
    assert PersistenceGateway.meta_key("board") == "board:meta"


def test_missing_buckets_read_as_none():
    async def scenario():
        store = MemoryKeyValueStore()
        store.data["board:0:1"] = b"payload"
        keys, payloads = await make_gateway(store).read_buckets("board", 0, 3)
        assert keys == ["board:0:0", "board:0:1", "board:0:2"]
        assert payloads == [None, b"payload", None]
    
    asyncio.run(scenario())


@pytest.mark.parametrize("parallel", [False, True])
def test_write_buckets(parallel):
    async def scenario():
        store = MemoryKeyValueStore()
        written = await make_gateway(store).write_buckets("board", 1, [(0, b"a"), (2, b"c")], parallel)
        assert written == [0, 2]
        assert store.data == {"board:1:0": b"a", "board:1:2": b"c"}
    
    asyncio.run(scenario())


def test_transient_failures_are_retried():
    async def scenario():
        store = FlakyStore({"board:0:0": 2}, error=ThrottledError)
        await make_gateway(store).write_buckets("board", 0, [(0, b"a")])
        assert store.attempts == ["board:0:0"] * 3
        assert store.data["board:0:0"] == b"a"
    
    asyncio.run(scenario())


def test_retries_give_up_after_max_attempts():
    async def scenario():
        store = FlakyStore({"board:0:0": 5})
        with pytest.raises(BackingStoreUnavailableError):
            await make_gateway(store, max_retries=2).write_buckets("board", 0, [(0, b"a")])
        assert len(store.attempts) == 2
    
    asyncio.run(scenario())


def test_size_limit_is_not_retried():
    async def scenario():
        store = FlakyStore()
        store.max_value_size = 4
        with pytest.raises(SizeExceededError):
            await make_gateway(store).write_buckets("board", 0, [(0, b"too large")])
        assert store.attempts == ["board:0:0"]
    
    asyncio.run(scenario())


def test_sequential_writes_stop_at_first_failure():
    async def scenario():
        store = FlakyStore({"board:0:1": 10})
        with pytest.raises(BackingStoreUnavailableError):
            await make_gateway(store, max_retries=1).write_buckets(
                "board", 0, [(0, b"a"), (1, b"b"), (2, b"c")], parallel=False
            )
        assert set(store.data) == {"board:0:0"}
    
    asyncio.run(scenario())


def test_parallel_writes_attempt_every_bucket():
    async def scenario():
        store = FlakyStore({"board:0:1": 10})
        with pytest.raises(BackingStoreUnavailableError):
            await make_gateway(store, max_retries=1).write_buckets(
                "board", 0, [(0, b"a"), (1, b"b"), (2, b"c")], parallel=True
            )
        assert set(store.data) == {"board:0:0", "board:0:2"}
    
    asyncio.run(scenario())


def test_advance_epoch():
    async def scenario():
        store = MemoryKeyValueStore()
        gateway = make_gateway(store)
        assert await gateway.read_meta("board") is None
        
        assert await gateway.advance_epoch("board", 4) == 1
        assert await gateway.advance_epoch("board", 4) == 2
        assert await gateway.read_meta("board") == StoreMeta(epoch=2, num_buckets=4)
    
    asyncio.run(scenario())


def test_corrupt_meta():
    async def scenario():
        store = MemoryKeyValueStore()
        store.data["board:meta"] = b"{not json"
        with pytest.raises(CorruptPayloadError):
            await make_gateway(store).read_meta("board")
        
        store.data["board:meta"] = b'{"epoch": 1, "num_buckets": 0}'
        with pytest.raises(CorruptPayloadError):
            await make_gateway(store).read_meta("board")
    
    asyncio.run(scenario())


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
