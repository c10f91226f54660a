"""Custom exceptions for the cache layer.

These never escape ``RedisCacheClient``; they are raised internally and
surface to callers only as ``CacheResult.error``.
"""


class CacheError(Exception):
    """Base exception for cache errors."""

    def __init__(self, message: str, key: str | None = None, cause: Exception | None = None):
        super().__init__(message)
        self.key = key
        self.cause = cause

    def __str__(self) -> str:
        msg = super().__str__()
        if self.key:
            msg = f"{msg} (Key: {self.key})"
        if self.cause:
            msg = f"{msg} (Caused by: {self.cause})"
        return msg


class CacheTransportError(CacheError):
    """Exception raised when the backing store cannot be reached or times out."""

    pass


class CacheSerializationError(CacheError):
    """Exception raised when a value cannot be encoded or a stored value decoded."""

    pass


class CacheUnavailableError(CacheError):
    """Exception raised when the client is not connected or has stopped retrying."""

    pass
