"""
Custom exceptions for the rank store with caller-friendly error messages.
"""

class RankStoreException(Exception):
    """Base exception for rank store errors."""
    def __init__(self, message: str, user_message: str = None):
        super().__init__(message)
        self.user_message = user_message or message

class EntryNotFoundError(RankStoreException):
    """Raised when an identity has no entry in the store."""
    def __init__(self, identity):
        super().__init__(
            f"Entry '{identity}' not found",
            f"No score recorded for '{identity}'."
        )
        self.identity = identity

class InvalidArgumentError(RankStoreException, ValueError):
    """Raised when an operation receives an argument it cannot honour."""
    def __init__(self, argument: str, reason: str):
        super().__init__(
            f"Invalid argument '{argument}': {reason}",
            reason
        )
        self.argument = argument

class CapacityExceededError(RankStoreException):
    """Raised when entries no longer fit in the configured buckets."""
    def __init__(self, size: int, num_buckets: int, max_bucket_size: int):
        super().__init__(
            f"{size} entries do not fit in {num_buckets} buckets of {max_bucket_size}",
            "The store is full. Increase the number of buckets before adding more entries."
        )
        self.size = size
        self.num_buckets = num_buckets
        self.max_bucket_size = max_bucket_size

class CorruptPayloadError(RankStoreException):
    """Raised when a stored payload cannot be decoded."""
    def __init__(self, reason: str, key: str = None):
        location = f" at '{key}'" if key else ""
        super().__init__(
            f"Corrupt payload{location}: {reason}",
            "Stored leaderboard data is corrupt and could not be loaded."
        )
        self.key = key
        self.reason = reason

class BackingStoreError(RankStoreException):
    """Raised when the backing key/value store rejects an operation."""
    def __init__(self, operation: str, details: str = None):
        super().__init__(
            f"Backing store error during {operation}: {details}",
            "Leaderboard storage is unavailable. Please try again later."
        )
        self.operation = operation

class TransientBackingStoreError(BackingStoreError):
    """Backing store failure that may succeed when retried."""

class BackingStoreUnavailableError(TransientBackingStoreError):
    """Raised when the backing store cannot be reached."""

class ThrottledError(TransientBackingStoreError):
    """Raised when the backing store rate limits requests."""

class SizeExceededError(BackingStoreError):
    """Raised when a value is larger than the backing store accepts."""
    def __init__(self, key: str, size: int, limit: int):
        super().__init__(
            f"set '{key}'",
            f"value of {size} bytes exceeds the {limit} byte limit"
        )
        self.size = size
        self.limit = limit
