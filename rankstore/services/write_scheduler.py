"""
Write scheduler for lazy bucket persistence.

Mutations mark buckets dirty; the scheduler decides when the dirty set is
handed to the flush callback:
- lazy save time >= 0: a timer is armed when the first bucket turns dirty
  and flushes everything dirty when it fires
- lazy save time == -1: every mutation flushes before returning

Only one flush runs at a time. Buckets marked dirty while a flush is in
flight are kept for the next cycle, and a failed flush puts its buckets back,
so no write is ever dropped.
"""

import asyncio
from contextlib import asynccontextmanager
from enum import Enum
from typing import Awaitable, Callable, FrozenSet, Iterable, Optional, Set

from rankstore.config import Config
from rankstore.constants import StoreConstants
from rankstore.utils.logger import setup_logger

logger = setup_logger(__name__)

FlushCallback = Callable[[Set[int]], Awaitable[None]]


class WriteState(Enum):
    CLEAN = "clean"
    DIRTY_PENDING = "dirty_pending"
    FLUSHING = "flushing"


class WriteScheduler:
    """Debounced write buffer for one store."""
    
    def __init__(self, flush_callback: FlushCallback, lazy_save_time: float, name: str = ''):
        self.flush_callback = flush_callback
        self.lazy_save_time = lazy_save_time
        self.name = name
        self._dirty: Set[int] = set()
        self._flushing = False
        self._flush_lock = asyncio.Lock()
        self._timer: Optional[asyncio.Task] = None
        self._background: Set[asyncio.Task] = set()
        self.flush_count = 0
    
    @property
    def write_through(self) -> bool:
        return self.lazy_save_time == StoreConstants.LAZY_SAVE_DISABLED
    
    @property
    def retry_delay(self) -> float:
        """Delay before a failed background flush is attempted again."""
        if self.write_through:
            return max(Config.DEFAULT_LAZY_SAVE_TIME, 0)
        return self.lazy_save_time
    
    @property
    def state(self) -> WriteState:
        if self._flushing:
            return WriteState.FLUSHING
        if self._dirty:
            return WriteState.DIRTY_PENDING
        return WriteState.CLEAN
    
    @property
    def dirty(self) -> FrozenSet[int]:
        return frozenset(self._dirty)
    
    @property
    def timer_armed(self) -> bool:
        return self._timer is not None and not self._timer.done()
    
    def add_dirty(self, indices: Iterable[int]):
        """Record dirty buckets without scheduling anything."""
        self._dirty.update(indices)
    
    def discard(self):
        """Forget pending writes, e.g. after the store moved to a new epoch."""
        self._dirty.clear()
        self._cancel_timer()
    
    async def mark_dirty(self, indices: Iterable[int]):
        """Record dirty buckets and schedule their persistence."""
        self._dirty.update(indices)
        if not self._dirty:
            return
        
        if not self.write_through:
            self._arm_timer(self.lazy_save_time)
            return
        
        try:
            await self.flush()
        except Exception as e:
            # The mutation already succeeded in memory; persistence is retried later
            logger.error(f"Write-through flush failed for '{self.name}': {e}", exc_info=True)
            self._arm_timer(self.retry_delay)
    
    async def flush(self):
        """Hand every dirty bucket to the flush callback. No-op when clean."""
        async with self._flush_lock:
            if not self._dirty:
                return
            
            dirty, self._dirty = self._dirty, set()
            self._flushing = True
            try:
                await self.flush_callback(dirty)
            except BaseException:
                self._dirty |= dirty
                raise
            finally:
                self._flushing = False
            self.flush_count += 1
        
        if self._dirty and not self.write_through:
            # Mutations that arrived mid-flush get their own cycle
            self._arm_timer(self.lazy_save_time)
    
    async def flush_buffer(self):
        """Manual flush: cancels a pending timer and surfaces failures."""
        self._cancel_timer()
        try:
            await self.flush()
        except Exception:
            if self._dirty:
                self._arm_timer(self.retry_delay)
            raise
    
    @asynccontextmanager
    async def exclusive(self):
        """Hold off flushes while bucket layout or epoch changes."""
        async with self._flush_lock:
            yield
    
    async def close(self):
        """Stop the timer and persist anything still pending."""
        self._cancel_timer()
        await self.flush()
        self._cancel_timer()
    
    def _arm_timer(self, delay: float):
        if self.timer_armed:
            return
        self._timer = asyncio.create_task(self._run_timer(delay))
        self._background.add(self._timer)
        self._timer.add_done_callback(self._background.discard)
    
    def _cancel_timer(self):
        if self.timer_armed:
            self._timer.cancel()
        self._timer = None
    
    async def _run_timer(self, delay: float):
        await asyncio.sleep(delay)
        # Detach first so a manual flush cannot cancel the write below
        self._timer = None
        try:
            await self.flush()
        except Exception as e:
            logger.error(f"Background flush failed for '{self.name}': {e}", exc_info=True)
            self._arm_timer(self.retry_delay)
