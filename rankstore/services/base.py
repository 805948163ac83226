"""
Base service class for the rank store.

Provides backing store access and retry logic for every service that
performs key/value I/O.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable

from rankstore.config import Config
from rankstore.database.key_value import KeyValueStore
from rankstore.utils.rank_exceptions import TransientBackingStoreError

logger = logging.getLogger(__name__)

class BaseService:
    """Base class for all services with backing store access."""
    
    def __init__(self, backing_store: KeyValueStore, max_retries: int = None, base_delay: float = None):
        """
        Initialize base service with a backing store.
        
        Args:
            backing_store: Key/value store adapter
            max_retries: Attempts per operation (defaults to Config.RETRY_MAX_ATTEMPTS)
            base_delay: First backoff delay in seconds (defaults to Config.RETRY_BASE_DELAY)
        """
        self.backing_store = backing_store
        self.max_retries = max_retries if max_retries is not None else Config.RETRY_MAX_ATTEMPTS
        self.base_delay = base_delay if base_delay is not None else Config.RETRY_BASE_DELAY
    
    async def execute_with_retry(self, func: Callable[[], Awaitable[Any]], operation: str = None) -> Any:
        """Execute a function with automatic retry on transient backing store errors."""
        operation = operation or getattr(func, '__name__', 'operation')
        for attempt in range(self.max_retries):
            try:
                return await func()
            except TransientBackingStoreError as e:
                if attempt == self.max_retries - 1:
                    raise
                logger.warning(f"Retry attempt {attempt + 1} for {operation}: {e}")
                await asyncio.sleep(self.base_delay * (2 ** attempt))  # Exponential backoff
