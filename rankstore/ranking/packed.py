"""
Packed string ranked collection.

Holds the whole leaderboard as a single canonical payload. Every query
decodes it and every mutation re-encodes it, so operations are O(n), but the
resident footprint is one bytes object. Suited to small, read-mostly boards.
"""

from bisect import bisect_left
from typing import List, Optional

from rankstore.constants import StoreConstants
from rankstore.data_models import Identity, Score, SetResult
from rankstore.ranking.base import RankedCollection
from rankstore.utils.codec import Pair, deserialize_entries, serialize_entries, validate_identity, validate_score


class PackedRankedCollection(RankedCollection):
    """Packed payload strategy ("string")."""
    
    name = 'string'
    
    def __init__(self, ascending: bool = False):
        super().__init__(ascending)
        self._packed = serialize_entries([])
        self._size = 0
    
    def __len__(self) -> int:
        return self._size
    
    def _unpack(self) -> List[Pair]:
        return deserialize_entries(self._packed)
    
    def _pack(self, pairs: List[Pair]):
        self._packed = serialize_entries(pairs)
        self._size = len(pairs)
    
    def _find(self, pairs: List[Pair], identity: Identity) -> Optional[int]:
        for position, (candidate, _) in enumerate(pairs):
            if candidate == identity:
                return position
        return None
    
    def score_of(self, identity: Identity) -> Optional[Score]:
        pairs = self._unpack()
        position = self._find(pairs, identity)
        return None if position is None else pairs[position][1]
    
    def position_of(self, identity: Identity) -> Optional[int]:
        return self._find(self._unpack(), identity)
    
    def slice(self, offset: int, count: int) -> List[Pair]:
        return self._unpack()[offset:offset + count]
    
    def clear(self):
        self._pack([])
    
    def serialize(self) -> bytes:
        return self._packed
    
    def upsert(self, identity: Identity, score: Score) -> SetResult:
        # One decode and one encode per mutation
        validate_identity(identity)
        validate_score(score)
        
        pairs = self._unpack()
        prev_rank = prev_score = None
        position = self._find(pairs, identity)
        if position is not None:
            prev_score = pairs.pop(position)[1]
            prev_rank = position + StoreConstants.FIRST_RANK
        
        keys = [self.sort_key(*pair) for pair in pairs]
        position = bisect_left(keys, self.sort_key(identity, score))
        pairs.insert(position, (identity, score))
        self._pack(pairs)
        
        return SetResult(
            new_rank=position + StoreConstants.FIRST_RANK,
            new_score=score,
            prev_rank=prev_rank,
            prev_score=prev_score
        )
    
    def _insert(self, identity: Identity, score: Score):
        pairs = self._unpack()
        keys = [self.sort_key(*pair) for pair in pairs]
        pairs.insert(bisect_left(keys, self.sort_key(identity, score)), (identity, score))
        self._pack(pairs)
    
    def _remove(self, identity: Identity, score: Score):
        pairs = self._unpack()
        del pairs[self._find(pairs, identity)]
        self._pack(pairs)
    
    def _load_sorted(self, pairs: List[Pair]):
        self._pack(pairs)
