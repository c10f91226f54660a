"""Redis-backed caching layer for read-heavy API responses."""

from .base import CacheConfig, CacheOutcome, CacheResult, ConnectionState
from .reconnect import ConnectionStateMachine, ReconnectPolicy
from .redis_cache import RedisCacheClient

__all__ = [
    "CacheConfig",
    "CacheOutcome",
    "CacheResult",
    "ConnectionState",
    "ConnectionStateMachine",
    "ReconnectPolicy",
    "RedisCacheClient",
]
