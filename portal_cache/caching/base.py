"""Base cache types and configuration."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from ..constants import CONSTANTS


class ConnectionState(Enum):
    """Lifecycle states of the connection to the backing store."""

    CONNECTING = "connecting"
    CONNECTED = "connected"
    RETRYING = "retrying"
    FAILED = "failed"


class CacheOutcome(Enum):
    """Result kinds of a cache lookup."""

    HIT = "hit"
    MISS = "miss"
    ERROR = "error"


@dataclass
class CacheConfig:
    """Configuration for the cache client using centralized constants."""

    redis_host: str = CONSTANTS.REDIS_HOST
    redis_port: int = CONSTANTS.REDIS_PORT
    redis_db: int = CONSTANTS.REDIS_DB
    redis_password: Optional[str] = CONSTANTS.REDIS_PASSWORD
    socket_connect_timeout: float = CONSTANTS.REDIS_SOCKET_CONNECT_TIMEOUT
    socket_timeout: float = CONSTANTS.REDIS_SOCKET_TIMEOUT

    ttl_default: int = CONSTANTS.DEFAULT_TTL
    slow_operation_ms: float = CONSTANTS.SLOW_OPERATION_MS


@dataclass(frozen=True)
class CacheResult:
    """Outcome of a lookup, separating "not present" from "store unreachable".

    Both ``MISS`` and ``ERROR`` carry no value, so callers that only care about
    the payload can treat them alike while metrics can still tell them apart.
    """

    outcome: CacheOutcome
    value: Any = None
    error: Optional[Exception] = None

    @property
    def hit(self) -> bool:
        return self.outcome is CacheOutcome.HIT

    @property
    def miss(self) -> bool:
        return self.outcome is CacheOutcome.MISS

    @property
    def failed(self) -> bool:
        return self.outcome is CacheOutcome.ERROR

    @classmethod
    def found(cls, value: Any) -> "CacheResult":
        return cls(CacheOutcome.HIT, value=value)

    @classmethod
    def absent(cls) -> "CacheResult":
        return cls(CacheOutcome.MISS)

    @classmethod
    def from_error(cls, error: Exception) -> "CacheResult":
        return cls(CacheOutcome.ERROR, error=error)
