"""
Bucket Operations - splitting one ranked collection across storage buckets

Buckets hold contiguous, disjoint slices of the global rank order, not hash
partitions. A BucketLayout records how many entries each bucket holds; the
slice a bucket covers follows from the sizes of the buckets before it.

A score update only changes the bucket the entry leaves and the bucket it
joins, so the layout is adjusted incrementally and only those buckets need
rewriting. When a bucket would overflow, the layout is recomputed as an even
split and every bucket is rewritten.
"""

import logging
from typing import Iterator, List, Optional, Sequence, Set, Tuple

from rankstore.ranking import RankedCollection, create_ranked_collection
from rankstore.utils.codec import Pair, decode_payload, encode_payload
from rankstore.utils.rank_exceptions import CapacityExceededError, InvalidArgumentError

logger = logging.getLogger(__name__)


def even_sizes(total: int, num_buckets: int) -> List[int]:
    """Sizes of ``num_buckets`` contiguous slices differing by at most one."""
    base, extra = divmod(total, num_buckets)
    return [base + 1] * extra + [base] * (num_buckets - extra)


class BucketLayout:
    """Entry counts of each bucket, in bucket index order."""
    
    def __init__(self, num_buckets: int, max_bucket_size: int, sizes: Optional[List[int]] = None):
        if num_buckets < 1:
            raise InvalidArgumentError('numBuckets', "at least one bucket is required")
        if max_bucket_size < 1:
            raise InvalidArgumentError('maxBucketSize', "buckets must hold at least one entry")
        if sizes is not None and len(sizes) != num_buckets:
            raise InvalidArgumentError('sizes', f"expected {num_buckets} bucket sizes, got {len(sizes)}")
        
        self.max_bucket_size = max_bucket_size
        self.sizes = list(sizes) if sizes is not None else [0] * num_buckets
    
    @classmethod
    def even(cls, total: int, num_buckets: int, max_bucket_size: int) -> 'BucketLayout':
        """Even split of ``total`` entries, failing if a bucket would overflow."""
        if num_buckets < 1:
            raise InvalidArgumentError('numBuckets', "at least one bucket is required")
        if -(-total // num_buckets) > max_bucket_size:
            raise CapacityExceededError(total, num_buckets, max_bucket_size)
        return cls(num_buckets, max_bucket_size, even_sizes(total, num_buckets))
    
    @property
    def num_buckets(self) -> int:
        return len(self.sizes)
    
    @property
    def total(self) -> int:
        return sum(self.sizes)
    
    @property
    def capacity(self) -> int:
        return self.num_buckets * self.max_bucket_size
    
    def spans(self) -> Iterator[Tuple[int, int, int]]:
        """(index, start position, entry count) for every bucket."""
        start = 0
        for index, size in enumerate(self.sizes):
            yield index, start, size
            start += size
    
    def span(self, index: int) -> Tuple[int, int]:
        start = sum(self.sizes[:index])
        return start, self.sizes[index]
    
    def bucket_at(self, position: int) -> int:
        """Index of the bucket holding the entry at ``position``."""
        for index, start, size in self.spans():
            if start <= position < start + size:
                return index
        raise InvalidArgumentError('position', f"position {position} is outside {self.total} entries")
    
    def remove_at(self, position: int) -> int:
        index = self.bucket_at(position)
        self.sizes[index] -= 1
        return index
    
    def insert_at(self, position: int) -> Set[int]:
        """
        Account for an entry inserted at ``position`` and return dirty buckets.
        
        Any bucket whose span touches the position can take the entry without
        disturbing its neighbours; the least filled one is chosen.
        """
        if self.total >= self.capacity:
            raise CapacityExceededError(self.total + 1, self.num_buckets, self.max_bucket_size)
        
        candidates = [
            index for index, start, size in self.spans()
            if start <= position <= start + size
        ]
        if not candidates:
            raise InvalidArgumentError('position', f"position {position} is outside {self.total} entries")
        
        index = min(candidates, key=lambda candidate: self.sizes[candidate])
        if self.sizes[index] < self.max_bucket_size:
            self.sizes[index] += 1
            return {index}
        
        logger.debug(f"Bucket {index} is full, rebalancing {self.total + 1} entries")
        self.sizes = even_sizes(self.total + 1, self.num_buckets)
        return set(range(self.num_buckets))
    
    def move(self, old_position: Optional[int], new_position: int) -> Set[int]:
        """
        Account for an entry leaving ``old_position`` (None for a new entry)
        and landing at ``new_position`` in the updated order.
        """
        dirty = set()
        if old_position is not None:
            dirty.add(self.remove_at(old_position))
        dirty |= self.insert_at(new_position)
        return dirty
    
    def __repr__(self):
        return f"<BucketLayout(sizes={self.sizes}, max_bucket_size={self.max_bucket_size})>"


def encode_buckets(
    collection: RankedCollection,
    layout: BucketLayout,
    indices: Optional[Set[int]] = None,
    compression: str = 'base91'
) -> List[Tuple[int, bytes]]:
    """Encoded payloads for the selected buckets (all when ``indices`` is None)."""
    payloads = []
    for index, start, size in layout.spans():
        if indices is not None and index not in indices:
            continue
        pairs = collection.slice(start, size) if size else []
        payloads.append((index, encode_payload(pairs, compression)))
    return payloads


def split(
    collection: RankedCollection,
    num_buckets: int,
    max_bucket_size: int,
    compression: str = 'base91'
) -> List[bytes]:
    """Split a collection into ``num_buckets`` even, ordered bucket payloads."""
    layout = BucketLayout.even(len(collection), num_buckets, max_bucket_size)
    return [payload for _, payload in encode_buckets(collection, layout, compression=compression)]


def decode_buckets(
    payloads: Sequence[Optional[bytes]],
    compression: str = 'base91',
    keys: Optional[Sequence[str]] = None
) -> List[List[Pair]]:
    """Decode bucket payloads in index order; missing buckets are empty."""
    buckets = []
    for index, payload in enumerate(payloads):
        if payload is None:
            buckets.append([])
            continue
        key = keys[index] if keys is not None else None
        buckets.append(decode_payload(payload, compression, key=key))
    return buckets


def merge(
    payloads: Sequence[Optional[bytes]],
    data_structure: str = 'table',
    ascending: bool = False,
    compression: str = 'base91',
    keys: Optional[Sequence[str]] = None
) -> RankedCollection:
    """Rebuild the full ranked collection from bucket payloads."""
    collection, _ = hydrate(payloads, data_structure, ascending, compression, keys=keys)
    return collection


def hydrate(
    payloads: Sequence[Optional[bytes]],
    data_structure: str = 'table',
    ascending: bool = False,
    compression: str = 'base91',
    max_bucket_size: Optional[int] = None,
    keys: Optional[Sequence[str]] = None
) -> Tuple[RankedCollection, BucketLayout]:
    """Rebuild the collection and the layout the payloads were written with."""
    buckets = decode_buckets(payloads, compression, keys=keys)
    sizes = [len(bucket) for bucket in buckets]
    
    collection = create_ranked_collection(data_structure, ascending)
    collection.load(pair for bucket in buckets for pair in bucket)
    
    largest = max(sizes + [1])
    if max_bucket_size is None:
        max_bucket_size = largest
    elif largest > max_bucket_size:
        logger.warning(f"Stored bucket of {largest} entries exceeds max_bucket_size {max_bucket_size}")
        max_bucket_size = largest
    return collection, BucketLayout(len(sizes), max_bucket_size, sizes)


def redistribute(
    collection: RankedCollection,
    layout: BucketLayout,
    new_num_buckets: int
) -> BucketLayout:
    """
    Spread the collection evenly over more buckets.
    
    Shrinking is not supported. Every bucket of the returned layout has to be
    rewritten, see ``encode_buckets``.
    """
    if new_num_buckets <= layout.num_buckets:
        raise InvalidArgumentError(
            'n', f"bucket count must grow beyond {layout.num_buckets}, got {new_num_buckets}"
        )
    
    return BucketLayout.even(len(collection), new_num_buckets, layout.max_bucket_size)
