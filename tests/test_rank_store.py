#!/usr/bin/env python3
"""
End-to-end tests for RankStore and RankStoreRegistry on the in-memory backing store.
"""

import asyncio
import json
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import pytest

from rankstore import (
    BackingStoreUnavailableError, CapacityExceededError, CorruptPayloadError, Entry,
    EntryNotFoundError, InvalidArgumentError, RankStoreRegistry
)
from rankstore.database import MemoryKeyValueStore
from rankstore.ranking import STRATEGIES
from rankstore.services import PersistenceGateway, WriteState
from rankstore.utils.codec import decode_payload

STRATEGY_NAMES = sorted(STRATEGIES)


class OutageStore(MemoryKeyValueStore):
    """Memory store whose writes fail while ``down`` is positive."""
    
    def __init__(self, down=0):
        super().__init__()
        self.down = down
    
    async def set(self, key, value):
        if self.down:
            self.down -= 1
            raise BackingStoreUnavailableError(f"set '{key}'", "simulated outage")
        await super().set(key, value)


def make_registry(backing=None):
    backing = backing if backing is not None else MemoryKeyValueStore()
    return RankStoreRegistry(gateway=PersistenceGateway(backing, max_retries=2, base_delay=0))


@pytest.mark.parametrize("strategy", STRATEGY_NAMES)
def test_documented_scenario(strategy):
    async def scenario():
        store = make_registry().get_rank_store("board", 2, 10, data_structure=strategy)
        await store.set_score("A", 10)
        await store.set_score("B", 30)
        await store.set_score("C", 20)
        
        assert await store.get_top_scores(2) == [Entry(id="B", rank=1, score=30), Entry(id="C", rank=2, score=20)]
        
        result = await store.set_score("A", 40)
        assert (result.prev_rank, result.prev_score, result.new_rank, result.new_score) == (3, 10, 1, 40)
        assert await store.get_entry("A") == Entry(id="A", rank=1, score=40)
    
    asyncio.run(scenario())


def test_unknown_entry():
    async def scenario():
        store = make_registry().get_rank_store("board", 1, 10)
        await store.set_score(1, 5)
        with pytest.raises(EntryNotFoundError):
            await store.get_entry(2)
    
    asyncio.run(scenario())


@pytest.mark.parametrize("n", [0, -3, 1.5, True])
def test_top_scores_requires_positive_count(n):
    async def scenario():
        store = make_registry().get_rank_store("board", 1, 10)
        with pytest.raises(InvalidArgumentError):
            await store.get_top_scores(n)
    
    asyncio.run(scenario())


def test_get_range_and_size():
    async def scenario():
        store = make_registry().get_rank_store("board", 2, 10)
        for identity in range(6):
            await store.set_score(identity, identity)
        
        page = await store.get_range(3, 2)
        assert page == [Entry(id=3, rank=3, score=3), Entry(id=2, rank=4, score=2)]
        assert await store.get_size() == 6
        with pytest.raises(InvalidArgumentError):
            await store.get_range(0, 2)
    
    asyncio.run(scenario())


def test_write_through_writes_once_per_mutation():
    async def scenario():
        backing = MemoryKeyValueStore()
        store = make_registry(backing).get_rank_store("board", 1, 10, lazy_save_time=-1)
        for identity in range(5):
            await store.set_score(identity, identity * 3)
            bucket_writes = [key for key in backing.written_keys if key != "board:meta"]
            assert len(bucket_writes) == identity + 1
        
        assert bucket_writes == ["board:0:0"] * 5
        assert backing.written_keys.count("board:meta") == 1
        assert store.write_state == WriteState.CLEAN
    
    asyncio.run(scenario())


def test_lazy_saving_waits_for_flush():
    async def scenario():
        backing = MemoryKeyValueStore()
        store = make_registry(backing).get_rank_store("board", 2, 10, lazy_save_time=60)
        for identity in range(5):
            await store.set_score(identity, identity)
        
        assert backing.set_calls == 0
        assert store.write_state == WriteState.DIRTY_PENDING
        
        await store.flush_buffer()
        assert backing.set_calls > 0
        assert store.write_state == WriteState.CLEAN
        
        calls = backing.set_calls
        await store.flush_buffer()
        assert backing.set_calls == calls
    
    asyncio.run(scenario())


def test_flush_writes_only_changed_buckets():
    async def scenario():
        backing = MemoryKeyValueStore()
        store = make_registry(backing).get_rank_store("board", 1, 8, lazy_save_time=60)
        for identity in range(8):
            await store.set_score(identity, identity * 10)
        await store.update_num_buckets(4)
        assert store.bucket_sizes == [2, 2, 2, 2]
        
        calls = backing.set_calls
        result = await store.set_score(0, 45)
        assert (result.prev_rank, result.new_rank) == (8, 4)
        await store.flush_buffer()
        
        assert backing.set_calls - calls == 2
        assert sorted(backing.written_keys[-2:]) == ["board:0:1", "board:0:3"]
        assert decode_payload(backing.data["board:0:2"]) == [(3, 30), (2, 20)]
    
    asyncio.run(scenario())


@pytest.mark.parametrize("strategy", STRATEGY_NAMES)
@pytest.mark.parametrize("compression", ["base91", "none"])
def test_reopened_store_hydrates_from_backing_store(strategy, compression):
    async def scenario():
        backing = MemoryKeyValueStore()
        options = dict(data_structure=strategy, compression=compression, ascending=True)
        
        store = make_registry(backing).get_rank_store("board", 3, 10, **options)
        for identity in range(20):
            await store.set_score(f"player{identity}", (identity * 7) % 13)
        await store.flush_buffer()
        expected = await store.get_top_scores(20)
        
        reopened = make_registry(backing).get_rank_store("board", 3, 10, **options)
        assert await reopened.get_top_scores(20) == expected
        assert await reopened.get_entry("player4") == await store.get_entry("player4")
    
    asyncio.run(scenario())


def test_hydration_reads_each_bucket_once():
    async def scenario():
        backing = MemoryKeyValueStore()
        store = make_registry(backing).get_rank_store("board", 3, 10)
        sizes = await asyncio.gather(store.get_size(), store.get_size(), store.get_top_scores(1))
        assert sizes[:2] == [0, 0]
        assert backing.get_calls == 4
    
    asyncio.run(scenario())


def test_corrupt_bucket_fails_hydration():
    async def scenario():
        backing = MemoryKeyValueStore()
        backing.data["board:0:1"] = b"garbage"
        store = make_registry(backing).get_rank_store("board", 2, 10)
        
        with pytest.raises(CorruptPayloadError) as excinfo:
            await store.get_top_scores(5)
        assert excinfo.value.key == "board:0:1"
        with pytest.raises(CorruptPayloadError):
            await store.set_score(1, 1)
    
    asyncio.run(scenario())


def test_new_entries_beyond_capacity_are_rejected():
    async def scenario():
        store = make_registry().get_rank_store("board", 2, 2)
        for identity in range(4):
            await store.set_score(identity, identity)
        
        with pytest.raises(CapacityExceededError):
            await store.set_score(99, 1)
        assert await store.get_size() == 4
        
        result = await store.set_score(0, 100)
        assert result.new_rank == 1
        
        await store.update_num_buckets(3)
        await store.set_score(99, 1)
        assert await store.get_size() == 5
    
    asyncio.run(scenario())


def test_update_num_buckets_must_grow():
    async def scenario():
        store = make_registry().get_rank_store("board", 3, 10)
        with pytest.raises(InvalidArgumentError):
            await store.update_num_buckets(3)
        with pytest.raises(InvalidArgumentError):
            await store.update_num_buckets(2)
        assert store.num_buckets == 3
    
    asyncio.run(scenario())


def test_update_num_buckets_redistributes_and_persists():
    async def scenario():
        backing = MemoryKeyValueStore()
        store = make_registry(backing).get_rank_store("board", 2, 4)
        for identity in range(8):
            await store.set_score(identity, identity % 5)
        before = await store.get_top_scores(8)
        
        await store.update_num_buckets(4)
        assert await store.get_top_scores(8) == before
        assert store.bucket_sizes == [2, 2, 2, 2]
        assert all(size <= 4 for size in store.bucket_sizes)
        assert json.loads(backing.data["board:meta"]) == {"epoch": 0, "num_buckets": 4}
        for index in range(4):
            assert len(decode_payload(backing.data[f"board:0:{index}"])) == 2
        
        reopened = make_registry(backing).get_rank_store("board", 2, 4)
        assert reopened.num_buckets == 2
        assert await reopened.get_top_scores(8) == before
        assert reopened.num_buckets == 4
    
    asyncio.run(scenario())


def test_first_flush_records_bucket_count():
    async def scenario():
        backing = MemoryKeyValueStore()
        store = make_registry(backing).get_rank_store("board", 4, 10, lazy_save_time=60)
        for identity in range(30):
            await store.set_score(identity, identity)
        await store.flush_buffer()
        
        assert json.loads(backing.data["board:meta"]) == {"epoch": 0, "num_buckets": 4}
        assert backing.written_keys[0] == "board:meta"
        expected = await store.get_top_scores(30)
        
        smaller = make_registry(backing).get_rank_store("board", 2, 10, lazy_save_time=60)
        assert await smaller.get_size() == 30
        assert smaller.num_buckets == 4
        
        await smaller.set_score(0, 100)
        await smaller.flush_buffer()
        reopened = make_registry(backing).get_rank_store("board", 4, 10)
        top = await reopened.get_top_scores(30)
        assert top[0] == Entry(id=0, rank=1, score=100)
        assert len(top) == len(expected)
    
    asyncio.run(scenario())


def test_reopening_with_more_buckets_records_new_count():
    async def scenario():
        backing = MemoryKeyValueStore()
        store = make_registry(backing).get_rank_store("board", 2, 10, lazy_save_time=60)
        for identity in range(20):
            await store.set_score(identity, identity)
        await store.flush_buffer()
        
        larger = make_registry(backing).get_rank_store("board", 4, 10, lazy_save_time=60)
        for identity in range(20, 40):
            await larger.set_score(identity, identity)
        await larger.flush_buffer()
        assert json.loads(backing.data["board:meta"])["num_buckets"] == 4
        
        reopened = make_registry(backing).get_rank_store("board", 2, 10)
        assert await reopened.get_size() == 40
    
    asyncio.run(scenario())


def test_unchanged_store_does_not_rewrite_meta():
    async def scenario():
        backing = MemoryKeyValueStore()
        store = make_registry(backing).get_rank_store("board", 2, 10, lazy_save_time=60)
        await store.set_score("A", 1)
        await store.flush_buffer()
        
        reopened = make_registry(backing).get_rank_store("board", 2, 10, lazy_save_time=60)
        await reopened.set_score("B", 2)
        await reopened.flush_buffer()
        assert backing.written_keys.count("board:meta") == 1
    
    asyncio.run(scenario())


def test_clear_starts_a_new_epoch():
    async def scenario():
        backing = MemoryKeyValueStore()
        store = make_registry(backing).get_rank_store("board", 2, 10)
        await store.set_score("A", 10)
        await store.set_score("B", 20)
        await store.flush_buffer()
        
        await store.clear()
        assert store.epoch == 1
        with pytest.raises(EntryNotFoundError):
            await store.get_entry("A")
        assert await store.get_size() == 0
        
        result = await store.set_score("A", 5)
        assert result.is_new
        assert result.new_rank == 1
        await store.flush_buffer()
        
        assert any(key.startswith("board:0:") for key in backing.data)
        assert any(key.startswith("board:1:") for key in backing.data)
        
        reopened = make_registry(backing).get_rank_store("board", 2, 10)
        assert await reopened.get_top_scores(10) == [Entry(id="A", rank=1, score=5)]
    
    asyncio.run(scenario())


def test_clear_drops_unflushed_writes():
    async def scenario():
        backing = MemoryKeyValueStore()
        store = make_registry(backing).get_rank_store("board", 2, 10, lazy_save_time=60)
        await store.set_score("A", 10)
        await store.clear()
        
        assert store.write_state == WriteState.CLEAN
        await store.flush_buffer()
        assert not any(key.startswith("board:0:") for key in backing.data)
    
    asyncio.run(scenario())


def test_registry_returns_first_configuration():
    registry = make_registry()
    first = registry.get_rank_store("board", 2, 10, data_structure="avl")
    second = registry.get_rank_store("board", 9, 99, data_structure="string")
    
    assert first is second
    assert second.num_buckets == 2
    assert second.data_structure == "avl"
    assert registry.get("board") is first
    assert registry.get("other") is None
    assert registry.names() == ["board"]


@pytest.mark.parametrize("options", [
    dict(num_buckets=0, max_bucket_size=10),
    dict(num_buckets=2, max_bucket_size=0),
    dict(num_buckets=2, max_bucket_size=10, lazy_save_time=-2),
    dict(num_buckets=2, max_bucket_size=10, data_structure="heap"),
    dict(num_buckets=2, max_bucket_size=10, compression="zip"),
])
def test_invalid_configuration(options):
    with pytest.raises(InvalidArgumentError):
        make_registry().get_rank_store("board", **options)


def test_background_flush_failures_do_not_surface():
    async def scenario():
        backing = OutageStore(down=3)
        store = make_registry(backing).get_rank_store("board", 1, 10, lazy_save_time=0.02)
        result = await store.set_score("A", 1)
        assert result.new_rank == 1
        
        await asyncio.sleep(0.5)
        assert store.write_state == WriteState.CLEAN
        assert decode_payload(backing.data["board:0:0"]) == [("A", 1)]
    
    asyncio.run(scenario())


def test_manual_flush_failures_surface():
    async def scenario():
        backing = OutageStore(down=2)
        store = make_registry(backing).get_rank_store("board", 1, 10, lazy_save_time=60)
        await store.set_score("A", 1)
        
        with pytest.raises(BackingStoreUnavailableError):
            await store.flush_buffer()
        assert store.write_state == WriteState.DIRTY_PENDING
        
        await store.flush_buffer()
        assert store.write_state == WriteState.CLEAN
        assert "board:0:0" in backing.data
    
    asyncio.run(scenario())


def test_parallel_writes():
    async def scenario():
        backing = MemoryKeyValueStore()
        store = make_registry(backing).get_rank_store("board", 5, 4, parallel=True)
        for identity in range(20):
            await store.set_score(identity, identity)
        await store.update_num_buckets(10)
        
        reopened = make_registry(backing).get_rank_store("board", 5, 4)
        assert await reopened.get_top_scores(20) == await store.get_top_scores(20)
    
    asyncio.run(scenario())


def test_concurrent_mutations_apply_in_call_order():
    async def scenario():
        backing = MemoryKeyValueStore()
        store = make_registry(backing).get_rank_store("board", 2, 10, lazy_save_time=-1)
        results = await asyncio.gather(*(store.set_score(i % 10, i) for i in range(50)))
        
        for i, result in enumerate(results):
            assert result.new_score == i
            assert result.prev_score == (i - 10 if i >= 10 else None)
        
        top = await store.get_top_scores(10)
        assert [entry.id for entry in top] == list(range(9, -1, -1))
        
        reopened = make_registry(backing).get_rank_store("board", 2, 10)
        assert await reopened.get_top_scores(10) == top
    
    asyncio.run(scenario())


def test_close_all_flushes_pending_writes():
    async def scenario():
        backing = MemoryKeyValueStore()
        registry = make_registry(backing)
        store = registry.get_rank_store("board", 1, 10, lazy_save_time=60)
        await store.set_score("A", 3)
        
        await registry.close_all()
        assert decode_payload(backing.data["board:0:0"]) == [("A", 3)]
    
    asyncio.run(scenario())


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
