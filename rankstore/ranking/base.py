"""
Ranked collection strategy interface.

A ranked collection holds every (identity, score) pair of one leaderboard in
rank order. Entries are ordered by score (descending unless the collection is
ascending) and ties are broken by identity ascending, with integer identities
ahead of string identities, so every query has one reproducible answer.

Positions are 0-based internally; ranks handed out are 1-based.
"""

from abc import ABC, abstractmethod
from typing import Iterable, Iterator, List, Optional, Tuple

from rankstore.constants import StoreConstants
from rankstore.data_models import Entry, Identity, Score, SetResult
from rankstore.utils.codec import Pair, deserialize_entries, serialize_entries, validate_identity, validate_score
from rankstore.utils.rank_exceptions import CorruptPayloadError, EntryNotFoundError, InvalidArgumentError

SortKey = Tuple[Score, Tuple[int, Identity]]


def identity_key(identity: Identity) -> Tuple[int, Identity]:
    """Total order over mixed int/str identities."""
    return (0, identity) if isinstance(identity, int) else (1, identity)


class RankedCollection(ABC):
    """
    Abstract base class for ranked collection strategies.
    
    Subclasses provide storage and positional access; insert/update, rank
    and serialization semantics are shared so all strategies agree.
    """
    
    name: str = ''
    
    def __init__(self, ascending: bool = False):
        self.ascending = ascending
    
    def sort_key(self, identity: Identity, score: Score) -> SortKey:
        """Key whose natural ascending order is rank order."""
        return (score if self.ascending else -score, identity_key(identity))
    
    # Storage primitives
    
    @abstractmethod
    def __len__(self) -> int:
        pass
    
    @abstractmethod
    def score_of(self, identity: Identity) -> Optional[Score]:
        """Score of an identity or None when absent."""
        pass
    
    @abstractmethod
    def position_of(self, identity: Identity) -> Optional[int]:
        """0-based position of an identity or None when absent."""
        pass
    
    @abstractmethod
    def slice(self, offset: int, count: int) -> List[Pair]:
        """Up to ``count`` pairs starting at 0-based position ``offset``."""
        pass
    
    @abstractmethod
    def clear(self):
        pass
    
    @abstractmethod
    def _insert(self, identity: Identity, score: Score):
        pass
    
    @abstractmethod
    def _remove(self, identity: Identity, score: Score):
        pass
    
    @abstractmethod
    def _load_sorted(self, pairs: List[Pair]):
        """Replace contents with pairs already in rank order."""
        pass
    
    # Shared contract
    
    def __contains__(self, identity) -> bool:
        return self.score_of(identity) is not None
    
    def upsert(self, identity: Identity, score: Score) -> SetResult:
        """Insert or update an entry and report its rank before and after."""
        validate_identity(identity)
        validate_score(score)
        
        prev_score = self.score_of(identity)
        prev_rank = None
        if prev_score is not None:
            prev_rank = self.position_of(identity) + StoreConstants.FIRST_RANK
            self._remove(identity, prev_score)
        
        self._insert(identity, score)
        new_rank = self.position_of(identity) + StoreConstants.FIRST_RANK
        
        return SetResult(
            new_rank=new_rank,
            new_score=score,
            prev_rank=prev_rank,
            prev_score=prev_score
        )
    
    def remove(self, identity: Identity) -> Entry:
        """Remove an entry, returning it as it was ranked before removal."""
        entry = self.lookup(identity)
        self._remove(identity, entry.score)
        return entry
    
    def lookup(self, identity: Identity) -> Entry:
        score = self.score_of(identity)
        if score is None:
            raise EntryNotFoundError(identity)
        return Entry(id=identity, rank=self.position_of(identity) + StoreConstants.FIRST_RANK, score=score)
    
    def rank_of(self, identity: Identity) -> int:
        position = self.position_of(identity)
        if position is None:
            raise EntryNotFoundError(identity)
        return position + StoreConstants.FIRST_RANK
    
    def range(self, offset: int, count: int) -> List[Entry]:
        """Ranked entries for ``count`` positions starting at 0-based ``offset``."""
        if offset < 0:
            raise InvalidArgumentError('offset', "offset must not be negative")
        if count <= 0:
            raise InvalidArgumentError('count', "count must be positive")
        return [
            Entry(id=identity, rank=offset + index + StoreConstants.FIRST_RANK, score=score)
            for index, (identity, score) in enumerate(self.slice(offset, count))
        ]
    
    def top(self, n: int) -> List[Entry]:
        if n <= 0:
            raise InvalidArgumentError('n', "n must be positive")
        return self.range(0, n)
    
    def entries(self) -> Iterator[Pair]:
        """All pairs in rank order."""
        return iter(self.slice(0, len(self)))
    
    def load(self, pairs: Iterable[Pair]):
        """Replace contents with ``pairs`` in any order."""
        pairs = list(pairs)
        seen = set()
        for identity, score in pairs:
            validate_identity(identity)
            validate_score(score)
            if identity in seen:
                raise CorruptPayloadError(f"duplicate identity {identity!r}")
            seen.add(identity)
        pairs.sort(key=lambda pair: self.sort_key(*pair))
        self._load_sorted(pairs)
    
    def serialize(self) -> bytes:
        """Canonical raw payload, identical for every strategy."""
        return serialize_entries(self.entries())
    
    @classmethod
    def deserialize(cls, payload: bytes, ascending: bool = False) -> 'RankedCollection':
        collection = cls(ascending=ascending)
        collection.load(deserialize_entries(payload))
        return collection
    
    def __repr__(self):
        order = 'ascending' if self.ascending else 'descending'
        return f"<{type(self).__name__}(size={len(self)}, {order})>"
