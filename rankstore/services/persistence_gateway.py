"""
Persistence gateway for bucket payloads.

Maps a store's buckets onto backing store keys under an epoch scheme:
bucket ``i`` of epoch ``e`` lives at ``"{name}:{e}:{i}"`` and the current epoch
and bucket count live in a small JSON record at ``"{name}:meta"``. Clearing a
store moves it to a new epoch; keys of older epochs are left in place and
never cleaned up.
"""

import asyncio
import json
from dataclasses import asdict, dataclass
from typing import List, Optional, Sequence, Tuple

from rankstore.constants import KeyConstants
from rankstore.services.base import BaseService
from rankstore.utils.logger import setup_logger
from rankstore.utils.rank_exceptions import CorruptPayloadError

logger = setup_logger(__name__)


@dataclass(frozen=True)
class StoreMeta:
    """Persisted epoch pointer of a store."""
    epoch: int
    num_buckets: int


class PersistenceGateway(BaseService):
    """Reads and writes bucket payloads through the backing store."""
    
    @staticmethod
    def bucket_key(name: str, epoch: int, index: int) -> str:
        return KeyConstants.BUCKET_KEY_FORMAT.format(name=name, epoch=epoch, index=index)
    
    @staticmethod
    def meta_key(name: str) -> str:
        return KeyConstants.META_KEY_FORMAT.format(name=name)
    
    async def read_meta(self, name: str) -> Optional[StoreMeta]:
        """Current epoch and bucket count, or None for a store that was never written."""
        key = self.meta_key(name)
        raw = await self.execute_with_retry(lambda: self.backing_store.get(key), f"get {key}")
        if raw is None:
            return None
        
        try:
            data = json.loads(raw)
            meta = StoreMeta(epoch=int(data['epoch']), num_buckets=int(data['num_buckets']))
        except (ValueError, KeyError, TypeError) as e:
            raise CorruptPayloadError(f"invalid store metadata: {e}", key=key) from e
        if meta.epoch < 0 or meta.num_buckets < 1:
            raise CorruptPayloadError(f"invalid store metadata: {meta}", key=key)
        return meta
    
    async def write_meta(self, name: str, meta: StoreMeta):
        key = self.meta_key(name)
        raw = json.dumps(asdict(meta)).encode('utf-8')
        await self.execute_with_retry(lambda: self.backing_store.set(key, raw), f"set {key}")
    
    async def read_buckets(self, name: str, epoch: int, num_buckets: int) -> Tuple[List[str], List[Optional[bytes]]]:
        """
        Fetch every bucket of an epoch.
        
        Returns the keys and payloads in bucket order; a missing key yields None,
        which callers treat as an empty bucket.
        """
        keys = [self.bucket_key(name, epoch, index) for index in range(num_buckets)]
        payloads = await asyncio.gather(*(
            self.execute_with_retry(lambda key=key: self.backing_store.get(key), f"get {key}")
            for key in keys
        ))
        logger.debug(f"Read {num_buckets} buckets for '{name}' epoch {epoch}")
        return keys, list(payloads)
    
    async def write_buckets(
        self,
        name: str,
        epoch: int,
        payloads: Sequence[Tuple[int, bytes]],
        parallel: bool = False
    ) -> List[int]:
        """
        Write (index, payload) pairs for an epoch.
        
        Sequential writes stop at the first failure. Parallel writes are all
        attempted and the first failure in bucket order is raised once every
        write has finished. Returns the indices written.
        """
        async def write_one(index: int, payload: bytes) -> int:
            key = self.bucket_key(name, epoch, index)
            await self.execute_with_retry(lambda: self.backing_store.set(key, payload), f"set {key}")
            return index
        
        if parallel:
            results = await asyncio.gather(
                *(write_one(index, payload) for index, payload in payloads),
                return_exceptions=True
            )
            failures = [result for result in results if isinstance(result, BaseException)]
            if failures:
                logger.error(
                    f"{len(failures)} of {len(results)} parallel bucket writes failed for '{name}'"
                )
                raise failures[0]
            written = list(results)
        else:
            written = []
            for index, payload in payloads:
                written.append(await write_one(index, payload))
        
        logger.debug(f"Wrote buckets {written} for '{name}' epoch {epoch}")
        return written
    
    async def advance_epoch(self, name: str, num_buckets: int) -> int:
        """Move a store to a fresh epoch and persist the pointer."""
        meta = await self.read_meta(name)
        current = meta.epoch if meta else KeyConstants.INITIAL_EPOCH
        new_epoch = current + 1
        await self.write_meta(name, StoreMeta(epoch=new_epoch, num_buckets=num_buckets))
        logger.info(f"Advanced '{name}' from epoch {current} to {new_epoch}")
        return new_epoch
