"""
Rank store data models

Provides immutable data transfer objects returned by the rank store.
"""

from dataclasses import dataclass
from typing import Optional, Union

Identity = Union[int, str]
Score = Union[int, float]


@dataclass(frozen=True)
class Entry:
    """Single leaderboard row."""
    id: Identity
    rank: int
    score: Score


@dataclass(frozen=True)
class SetResult:
    """Before/after snapshot of a score update."""
    new_rank: int
    new_score: Score
    prev_rank: Optional[int] = None
    prev_score: Optional[Score] = None
    
    @property
    def is_new(self) -> bool:
        return self.prev_rank is None
