"""
Rank store facade.

Wires one in-memory ranked collection to its bucket layout, write scheduler
and persistence gateway. Reads are served from memory; mutations update
memory first and mark the affected buckets dirty for the scheduler.

Mutating calls run one at a time in call order. Reads never wait on a
mutation because in-memory updates complete without yielding to the loop.
"""

import asyncio
from typing import List, Set

from rankstore.config import Config
from rankstore.constants import KeyConstants, StoreConstants
from rankstore.data_models import Entry, Identity, Score, SetResult
from rankstore.operations.bucket_operations import BucketLayout, encode_buckets, hydrate, redistribute
from rankstore.ranking import create_ranked_collection
from rankstore.services.persistence_gateway import PersistenceGateway, StoreMeta
from rankstore.services.write_scheduler import WriteScheduler, WriteState
from rankstore.utils.codec import get_compression, validate_identity, validate_score
from rankstore.utils.logger import setup_logger
from rankstore.utils.rank_exceptions import CapacityExceededError, InvalidArgumentError

logger = setup_logger(__name__)


def _require_positive_int(argument: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidArgumentError(argument, f"must be a positive integer, got {value!r}")
    return value


class RankStore:
    """A named leaderboard persisted as buckets in a key/value store."""
    
    def __init__(
        self,
        name: str,
        num_buckets: int,
        max_bucket_size: int,
        gateway: PersistenceGateway,
        lazy_save_time: float = None,
        parallel: bool = False,
        data_structure: str = None,
        compression: str = None,
        ascending: bool = False
    ):
        if not isinstance(name, str) or not name:
            raise InvalidArgumentError('name', "store name must be a non-empty string")
        _require_positive_int('numBuckets', num_buckets)
        _require_positive_int('maxBucketSize', max_bucket_size)
        
        lazy_save_time = Config.DEFAULT_LAZY_SAVE_TIME if lazy_save_time is None else lazy_save_time
        if lazy_save_time != StoreConstants.LAZY_SAVE_DISABLED and lazy_save_time < 0:
            raise InvalidArgumentError('lazySaveTime', "must be -1 or a non-negative number of seconds")
        
        self.name = name
        self.max_bucket_size = max_bucket_size
        self.parallel = parallel
        self.data_structure = data_structure or Config.DEFAULT_DATA_STRUCTURE
        self.compression = get_compression(compression or Config.DEFAULT_COMPRESSION).name
        self.ascending = ascending
        self.gateway = gateway
        
        self._collection = create_ranked_collection(self.data_structure, ascending)
        self._layout = BucketLayout(num_buckets, max_bucket_size)
        self._epoch = KeyConstants.INITIAL_EPOCH
        self._meta_dirty = False
        self._loaded = False
        self._load_lock = asyncio.Lock()
        self._mutation_lock = asyncio.Lock()
        self._scheduler = WriteScheduler(self._write_buckets, lazy_save_time, name)
    
    @property
    def num_buckets(self) -> int:
        return self._layout.num_buckets
    
    @property
    def lazy_save_time(self) -> float:
        return self._scheduler.lazy_save_time
    
    @property
    def epoch(self) -> int:
        return self._epoch
    
    @property
    def bucket_sizes(self) -> List[int]:
        return list(self._layout.sizes)
    
    @property
    def write_state(self) -> WriteState:
        return self._scheduler.state
    
    async def _ensure_loaded(self):
        """Hydrate from the backing store on first access."""
        if self._loaded:
            return
        
        async with self._load_lock:
            if self._loaded:
                return
            
            meta = await self.gateway.read_meta(self.name)
            epoch = meta.epoch if meta else KeyConstants.INITIAL_EPOCH
            num_buckets = self._layout.num_buckets
            if meta and meta.num_buckets > num_buckets:
                logger.info(f"'{self.name}' was resized to {meta.num_buckets} buckets, using stored count")
                num_buckets = meta.num_buckets
            
            keys, payloads = await self.gateway.read_buckets(self.name, epoch, num_buckets)
            collection, layout = hydrate(
                payloads,
                data_structure=self.data_structure,
                ascending=self.ascending,
                compression=self.compression,
                max_bucket_size=self.max_bucket_size,
                keys=keys
            )
            
            self._collection = collection
            self._layout = layout
            self._epoch = epoch
            # A missing or smaller stored count would let a reopen read too few buckets
            self._meta_dirty = meta is None or meta.num_buckets < num_buckets
            self._loaded = True
            logger.info(
                f"Loaded '{self.name}' epoch {epoch}: {len(collection)} entries in {num_buckets} buckets"
            )
    
    async def _write_buckets(self, indices: Set[int]):
        """Flush callback: encode the current contents of dirty buckets and write them."""
        epoch = self._epoch
        meta_dirty = self._meta_dirty
        payloads = encode_buckets(
            self._collection,
            self._layout,
            {index for index in indices if index < self._layout.num_buckets},
            self.compression
        )
        num_buckets = self._layout.num_buckets
        
        logger.debug(f"Flushing {len(payloads)} buckets of '{self.name}'")
        # Meta goes first: a reader may see more buckets than were written, never fewer
        if meta_dirty:
            await self.gateway.write_meta(self.name, StoreMeta(epoch=epoch, num_buckets=num_buckets))
            if self._epoch == epoch:
                self._meta_dirty = False
        await self.gateway.write_buckets(self.name, epoch, payloads, self.parallel)
    
    async def set_score(self, identity: Identity, score: Score) -> SetResult:
        """Set the score for an identity and report its rank before and after."""
        validate_identity(identity)
        validate_score(score)
        
        async with self._mutation_lock:
            await self._ensure_loaded()
            
            old_position = self._collection.position_of(identity)
            if old_position is None and len(self._collection) >= self._layout.capacity:
                raise CapacityExceededError(
                    len(self._collection) + 1, self._layout.num_buckets, self._layout.max_bucket_size
                )
            
            result = self._collection.upsert(identity, score)
            dirty = self._layout.move(old_position, result.new_rank - StoreConstants.FIRST_RANK)
        
        await self._scheduler.mark_dirty(dirty)
        return result
    
    async def get_entry(self, identity: Identity) -> Entry:
        """Entry for an identity; raises EntryNotFoundError when absent."""
        validate_identity(identity)
        await self._ensure_loaded()
        return self._collection.lookup(identity)
    
    async def get_top_scores(self, n: int) -> List[Entry]:
        """Up to ``n`` best ranked entries."""
        _require_positive_int('n', n)
        await self._ensure_loaded()
        return self._collection.top(n)
    
    async def get_range(self, start_rank: int, count: int) -> List[Entry]:
        """Up to ``count`` entries starting at ``start_rank`` (1-based)."""
        _require_positive_int('start_rank', start_rank)
        _require_positive_int('count', count)
        await self._ensure_loaded()
        return self._collection.range(start_rank - StoreConstants.FIRST_RANK, count)
    
    async def get_size(self) -> int:
        await self._ensure_loaded()
        return len(self._collection)
    
    async def update_num_buckets(self, n: int):
        """
        Increase the number of buckets and spread entries evenly across them.
        
        Every bucket is rewritten, so this is costly for large stores.
        """
        _require_positive_int('n', n)
        
        async with self._mutation_lock:
            await self._ensure_loaded()
            
            async with self._scheduler.exclusive():
                self._layout = redistribute(self._collection, self._layout, n)
                self._meta_dirty = True
                self._scheduler.add_dirty(range(n))
            
            logger.info(f"Redistributed '{self.name}' over {n} buckets: {self._layout.sizes}")
            await self._scheduler.flush_buffer()
    
    async def flush_buffer(self):
        """Persist pending changes now; failures are raised to the caller."""
        await self._scheduler.flush_buffer()
    
    async def clear(self):
        """
        Remove every entry by moving the store to a new epoch.
        
        Data of earlier epochs stays in the backing store but is never read again.
        """
        async with self._mutation_lock:
            await self._ensure_loaded()
            
            async with self._scheduler.exclusive():
                self._epoch = await self.gateway.advance_epoch(self.name, self._layout.num_buckets)
                self._collection.clear()
                self._layout = BucketLayout(self._layout.num_buckets, self._layout.max_bucket_size)
                self._meta_dirty = False
                self._scheduler.discard()
            
            logger.info(f"Cleared '{self.name}', now at epoch {self._epoch}")
    
    async def close(self):
        """Stop lazy saving and persist anything pending."""
        await self._scheduler.close()
    
    def __repr__(self):
        return (
            f"<RankStore(name='{self.name}', buckets={self.num_buckets}, "
            f"structure='{self.data_structure}', epoch={self._epoch})>"
        )
