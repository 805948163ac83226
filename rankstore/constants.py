"""
Store-wide constants for the rank store.

This module contains the magic numbers and names shared by the ranked
collections, the codec and the persistence layer.
"""

class StoreConstants:
    """Constants related to store configuration."""
    
    # Lazy save time that disables buffering (every mutation writes through)
    LAZY_SAVE_DISABLED = -1
    
    # Ranked collection strategies
    DATA_STRUCTURES = ('table', 'avl', 'string')
    
    # Bucket payload compression variants
    COMPRESSIONS = ('base91', 'none')
    
    # Ranks handed to callers start at 1
    FIRST_RANK = 1

class KeyConstants:
    """Constants for backing store key layout."""
    
    # "{name}:{epoch}:{index}"
    BUCKET_KEY_FORMAT = "{name}:{epoch}:{index}"
    
    # "{name}:meta" holds the epoch pointer and bucket count
    META_KEY_FORMAT = "{name}:meta"
    
    # Epoch used by a store that has never been cleared
    INITIAL_EPOCH = 0

class CodecConstants:
    """Constants for the bucket payload wire format."""
    
    MAGIC = b"RKS"
    VERSION = 1
    
    # Identity and score type tags
    TAG_INT = b"i"
    TAG_STR = b"s"
    TAG_FLOAT = b"f"
    
    # Bounds of the int64 fields
    INT64_MIN = -(2 ** 63)
    INT64_MAX = 2 ** 63 - 1
    
    # Longest encodable string identity (uint16 length prefix)
    MAX_IDENTITY_BYTES = 0xFFFF
