"""
rankstore - bucketed leaderboard storage on key/value backends.
"""

from rankstore.data_models import Entry, SetResult
from rankstore.services import RankStore, RankStoreRegistry
from rankstore.utils.rank_exceptions import (
    BackingStoreError, BackingStoreUnavailableError, CapacityExceededError, CorruptPayloadError,
    EntryNotFoundError, InvalidArgumentError, RankStoreException, SizeExceededError, ThrottledError
)

__version__ = '1.0.0'

__all__ = [
    'Entry', 'SetResult', 'RankStore', 'RankStoreRegistry',
    'RankStoreException', 'EntryNotFoundError', 'InvalidArgumentError', 'CapacityExceededError',
    'CorruptPayloadError', 'BackingStoreError', 'BackingStoreUnavailableError', 'ThrottledError',
    'SizeExceededError'
]
