"""
Exceptions raised by the read-through cache layer.
"""

from typing import Iterable, Optional


class ReadThroughError(Exception):
    """Base exception for cache layer errors."""
    def __init__(self, message: str, keys: Optional[Iterable[str]] = None):
        self.message = message
        self.keys = tuple(keys or ())
        super().__init__(message)


class CacheStoreReadError(ReadThroughError):
    """Raised when the bulk read from the remote cache fails."""
    pass


class CacheStoreWriteError(ReadThroughError):
    """Raised when writing a value back to the remote cache fails."""
    pass


class LockStoreUnavailableError(ReadThroughError):
    """Raised when the refresh lock store cannot be reached."""
    pass
