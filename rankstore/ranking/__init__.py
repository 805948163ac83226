"""
Ranked collection strategies.

Three interchangeable representations of one leaderboard, selected by name
when a store is created:
- TableRankedCollection ("table"): sorted array, the default
- AVLRankedCollection ("avl"): size-augmented AVL tree for mixed workloads
- PackedRankedCollection ("string"): single packed payload for read-mostly boards
"""

from typing import Dict, Type

from rankstore.utils.rank_exceptions import InvalidArgumentError

from .avl import AVLRankedCollection
from .base import RankedCollection, identity_key
from .packed import PackedRankedCollection
from .table import TableRankedCollection

STRATEGIES: Dict[str, Type[RankedCollection]] = {
    TableRankedCollection.name: TableRankedCollection,
    AVLRankedCollection.name: AVLRankedCollection,
    PackedRankedCollection.name: PackedRankedCollection,
}


def create_ranked_collection(data_structure: str = 'table', ascending: bool = False) -> RankedCollection:
    """Instantiate the ranked collection strategy registered under ``data_structure``."""
    try:
        strategy = STRATEGIES[data_structure]
    except KeyError:
        raise InvalidArgumentError(
            'dataStructure', f"unknown data structure '{data_structure}', expected one of {', '.join(STRATEGIES)}"
        ) from None
    return strategy(ascending=ascending)


__all__ = [
    'RankedCollection', 'TableRankedCollection', 'AVLRankedCollection', 'PackedRankedCollection',
    'STRATEGIES', 'create_ranked_collection', 'identity_key'
]
