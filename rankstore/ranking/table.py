"""
Sorted array ranked collection.

Keeps one list of sort keys in rank order alongside an identity -> score map.
Lookups are a dict hit plus a binary search; inserts and removals shift the
list, which is cheap in practice and keeps memory use predictable.
"""

from bisect import bisect_left, insort
from typing import Dict, List, Optional

from rankstore.data_models import Identity, Score
from rankstore.ranking.base import RankedCollection, SortKey
from rankstore.utils.codec import Pair


class TableRankedCollection(RankedCollection):
    """Sorted list strategy ("table")."""
    
    name = 'table'
    
    def __init__(self, ascending: bool = False):
        super().__init__(ascending)
        self._keys: List[SortKey] = []
        self._scores: Dict[Identity, Score] = {}
    
    def __len__(self) -> int:
        return len(self._keys)
    
    def score_of(self, identity: Identity) -> Optional[Score]:
        return self._scores.get(identity)
    
    def position_of(self, identity: Identity) -> Optional[int]:
        score = self._scores.get(identity)
        if score is None:
            return None
        return bisect_left(self._keys, self.sort_key(identity, score))
    
    def slice(self, offset: int, count: int) -> List[Pair]:
        pairs = []
        for _, (_, identity) in self._keys[offset:offset + count]:
            pairs.append((identity, self._scores[identity]))
        return pairs
    
    def clear(self):
        self._keys = []
        self._scores = {}
    
    def _insert(self, identity: Identity, score: Score):
        insort(self._keys, self.sort_key(identity, score))
        self._scores[identity] = score
    
    def _remove(self, identity: Identity, score: Score):
        del self._keys[bisect_left(self._keys, self.sort_key(identity, score))]
        del self._scores[identity]
    
    def _load_sorted(self, pairs: List[Pair]):
        self._keys = [self.sort_key(identity, score) for identity, score in pairs]
        self._scores = dict(pairs)
