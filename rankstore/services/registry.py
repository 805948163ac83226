"""
Process-wide registry of rank stores.

The registry owns the backing store and hands out one RankStore per name.
The first call for a name fixes that store's configuration; later calls with
the same name return the same live instance whatever they pass.
"""

from typing import Dict, List, Optional

from rankstore.database import KeyValueStore, create_backing_store
from rankstore.services.persistence_gateway import PersistenceGateway
from rankstore.services.rank_store import RankStore
from rankstore.utils.logger import setup_logger

logger = setup_logger(__name__)


class RankStoreRegistry:
    """Creates and caches RankStore instances by name."""
    
    def __init__(self, backing_store: KeyValueStore = None, gateway: PersistenceGateway = None):
        """
        Initialize the registry.
        
        Args:
            backing_store: Key/value store adapter (defaults to Config.BACKING_STORE_URL)
            gateway: Persistence gateway to share (defaults to one over ``backing_store``)
        """
        if gateway is not None:
            backing_store = gateway.backing_store
        self.backing_store = backing_store or create_backing_store()
        self.gateway = gateway or PersistenceGateway(self.backing_store)
        self._stores: Dict[str, RankStore] = {}
    
    def get_rank_store(
        self,
        name: str,
        num_buckets: int,
        max_bucket_size: int,
        lazy_save_time: float = None,
        parallel: bool = False,
        data_structure: str = None,
        compression: str = None,
        ascending: bool = False
    ) -> RankStore:
        """
        Create or retrieve the rank store called ``name``.
        
        Args:
            name: Name of the store
            num_buckets: Number of buckets to use
            max_bucket_size: Maximum number of entries in each bucket
            lazy_save_time: Seconds to buffer writes (default 60); -1 writes every mutation through
            parallel: Whether to write buckets concurrently
            data_structure: "table", "avl" or "string" (default "table")
            compression: "base91" or "none" (default "base91")
            ascending: Rank lower scores first
        """
        store = self._stores.get(name)
        if store is not None:
            if (num_buckets, max_bucket_size) != (store.num_buckets, store.max_bucket_size):
                logger.debug(f"Ignoring new configuration for existing store '{name}'")
            return store
        
        store = RankStore(
            name,
            num_buckets,
            max_bucket_size,
            self.gateway,
            lazy_save_time=lazy_save_time,
            parallel=parallel,
            data_structure=data_structure,
            compression=compression,
            ascending=ascending
        )
        self._stores[name] = store
        logger.info(f"Created rank store '{name}' ({store.data_structure}, {store.num_buckets} buckets)")
        return store
    
    def get(self, name: str) -> Optional[RankStore]:
        return self._stores.get(name)
    
    def names(self) -> List[str]:
        return list(self._stores)
    
    async def close_all(self):
        """Flush every store and release the backing store."""
        for name, store in self._stores.items():
            try:
                await store.close()
            except Exception as e:
                logger.error(f"Failed to flush '{name}' on shutdown: {e}", exc_info=True)
        await self.backing_store.close()
        logger.info("Rank store registry closed")
