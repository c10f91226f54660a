"""Centralized constants and configuration for the portal response cache.

Every tunable value lives here and is read from the environment once at
import time. Business logic must not hardcode any of these values.
"""

from os import environ

# Redis connection - host/port are the only endpoint settings operators change
REDIS_HOST: str = environ.get("REDIS_HOST", "localhost")
REDIS_PORT: int = int(environ.get("REDIS_PORT", "6379"))
REDIS_DB: int = int(environ.get("REDIS_DB", "0"))
REDIS_PASSWORD: str | None = environ.get("REDIS_PASSWORD") or None

# Socket timeouts keep in-flight operations from queueing behind a dead store
REDIS_SOCKET_CONNECT_TIMEOUT: float = float(environ.get("REDIS_SOCKET_CONNECT_TIMEOUT", "2.0"))
REDIS_SOCKET_TIMEOUT: float = float(environ.get("REDIS_SOCKET_TIMEOUT", "2.0"))

# Entry expiration
DEFAULT_TTL: int = int(environ.get("CACHE_DEFAULT_TTL", "3600"))  # 1 hour for client writes
RESPONSE_CACHE_TTL: int = int(environ.get("RESPONSE_CACHE_TTL", "300"))  # 5 minutes
RESPONSE_CACHE_NAMESPACE: str = environ.get("RESPONSE_CACHE_NAMESPACE", "cache")
KEY_SEPARATOR: str = ":"

# Reconnection backoff: delay = min(attempt * step, cap)
RECONNECT_DELAY_STEP_MS: int = 100
RECONNECT_MAX_DELAY_MS: int = 3000
RECONNECT_MAX_ATTEMPTS: int = 10
RECONNECT_MAX_TOTAL_SECONDS: int = 60 * 60  # 1 hour of cumulative retrying
MS_PER_SECOND: int = 1000

# Operation monitoring
SLOW_OPERATION_MS: float = float(environ.get("CACHE_SLOW_OPERATION_MS", "100"))

# HTTP
HTTP_STATUS_OK: int = 200
CACHEABLE_METHODS: frozenset[str] = frozenset(["GET"])
JSON_MEDIA_TYPE: str = "application/json"
CACHE_STATUS_HEADER: str = "X-Cache"
CACHE_STATUS_HIT: str = "HIT"
CACHE_STATUS_MISS: str = "MISS"

# Logging Configuration
LOG_LEVEL: str = environ.get("LOG_LEVEL", "INFO")

# Test Redis Configuration
TEST_REDIS_HOST: str = environ.get("TEST_REDIS_HOST", "localhost")
TEST_REDIS_PORT: int = int(environ.get("TEST_REDIS_PORT", "6379"))
TEST_REDIS_DB: int = 15  # Use highest DB for tests


class TestConstants:  # pylint: disable=too-few-public-methods
    """Test constants container."""

    __test__ = False

    TEST_REDIS_HOST = TEST_REDIS_HOST
    TEST_REDIS_PORT = TEST_REDIS_PORT
    TEST_REDIS_DB = TEST_REDIS_DB


class AppConstants:  # pylint: disable=too-few-public-methods
    """Attribute access to the module level constants."""

    def __getattr__(self, name: str):
        """Redirect to module level constants."""
        import sys  # pylint: disable=import-outside-toplevel

        return getattr(sys.modules[__name__], name)


TEST_CONSTANTS = TestConstants()
CONSTANTS = AppConstants()
