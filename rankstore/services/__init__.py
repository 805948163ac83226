"""
Services package for the rank store.

Persistence, write scheduling and the store facade.
"""

from .base import BaseService
from .persistence_gateway import PersistenceGateway, StoreMeta
from .rank_store import RankStore
from .registry import RankStoreRegistry
from .write_scheduler import WriteScheduler, WriteState

__all__ = [
    'BaseService', 'PersistenceGateway', 'StoreMeta', 'RankStore',
    'RankStoreRegistry', 'WriteScheduler', 'WriteState'
]
