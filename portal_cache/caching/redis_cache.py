"""Redis-backed cache client with bounded reconnection and fail-open operations."""

import asyncio
import json
import time
from collections.abc import Awaitable, Callable
from contextlib import suppress
from typing import Any, Optional, TypeVar

import redis.asyncio as redis
import structlog
from redis.asyncio.retry import Retry
from redis.backoff import NoBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError

from ..core.exceptions import (
    CacheError,
    CacheSerializationError,
    CacheTransportError,
    CacheUnavailableError,
)
from .base import CacheConfig, CacheResult, ConnectionState
from .reconnect import ConnectionStateMachine, ReconnectPolicy

T = TypeVar("T")

# Failures that mean the connection itself is gone, not just one slow command
CONNECTION_LOST_ERRORS = (RedisConnectionError, ConnectionError)


class RedisCacheClient:
    """Narrow key-value interface over Redis that never raises to its callers.

    Values are stored as UTF-8 JSON text with a per-entry expiration. Transport
    and serialization failures are logged and reported as a miss (``get``),
    an error outcome (``lookup``) or ``False`` (``set``/``delete``/``flush``).

    Operations fail fast unless the connection is ``CONNECTED``; they never wait
    for the background reconnect loop. Construct one client per process and
    pass it to the components that need it.
    """

    def __init__(
        self,
        config: CacheConfig | None = None,
        policy: ReconnectPolicy | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the cache client without connecting.

        Args:
            config: Cache configuration (defaults read from the environment)
            policy: Reconnection policy (defaults to the bounded linear backoff)
            clock: Monotonic clock used for retry bookkeeping
        """
        self.config = config or CacheConfig()
        self.policy = policy or ReconnectPolicy()
        self.logger = structlog.get_logger(self.__class__.__name__)

        self.redis_client: Optional[redis.Redis] = None
        self._clock = clock
        self._connection = ConnectionStateMachine(self.policy, clock=clock)
        self._reconnect_task: Optional[asyncio.Task] = None
        self._stats = self._empty_stats()

    @staticmethod
    def _empty_stats() -> dict[str, int]:
        return {
            "hits": 0,
            "misses": 0,
            "sets": 0,
            "deletes": 0,
            "errors": 0,
            "slow_operations": 0,
        }

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._connection.state

    async def initialize(self) -> bool:
        """Make the first connection attempt and start retrying in the background.

        Once retries are exhausted this does not reconnect; use ``reset()``.

        Returns:
            True if the client is connected when the first attempt finishes
        """
        if self._connection.is_failed:
            self.logger.warning("Redis reconnection exhausted, call reset() to retry")
            return False
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return self._connection.is_connected

        delay = await self._attempt_connection()
        if delay is not None:
            self._start_reconnect(delay)
        return self._connection.is_connected

    async def reset(self) -> bool:
        """Drop the current connection and start a fresh reconnect cycle.

        This is the only way out of the ``FAILED`` state.
        """
        await self.close()
        self._connection = ConnectionStateMachine(self.policy, clock=self._clock)
        return await self.initialize()

    async def close(self) -> None:
        """Stop reconnecting and close the Redis connection."""
        task = self._reconnect_task
        self._reconnect_task = None
        if task is not None and not task.done():
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task

        if self.redis_client is not None:
            await self._close_client()
            self.logger.info("Redis connection closed")

    async def _close_client(self) -> None:
        client = self.redis_client
        self.redis_client = None
        if client is None:
            return
        try:
            await client.aclose()
        except (RedisError, OSError) as e:
            self.logger.warning("Failed to cleanup Redis connection", error=str(e))

    async def _open_connection(self) -> None:
        """Create a Redis client and verify it with PING."""
        await self._close_client()

        # redis-py retries are disabled; reconnection is governed by our policy
        client = redis.Redis(
            host=self.config.redis_host,
            port=self.config.redis_port,
            db=self.config.redis_db,
            password=self.config.redis_password,
            decode_responses=True,
            socket_connect_timeout=self.config.socket_connect_timeout,
            socket_timeout=self.config.socket_timeout,
            retry=Retry(NoBackoff(), 0),
        )
        self.redis_client = client

        try:
            await client.ping()
        except (RedisError, OSError):
            await self._close_client()
            raise

    async def _attempt_connection(self) -> Optional[float]:
        """Run one connection attempt.

        Returns:
            The delay before the next attempt, or None when no retry is due
            (either connected or retries exhausted)
        """
        self._connection.mark_connecting()
        try:
            await self._open_connection()
        except (RedisError, OSError) as e:
            self.logger.error(
                "Failed to connect to Redis",
                host=self.config.redis_host,
                port=self.config.redis_port,
                error=str(e),
            )
            return self._connection.record_failure(e)

        self._connection.mark_connected()
        self.logger.info(
            "Redis connection established",
            host=self.config.redis_host,
            port=self.config.redis_port,
        )
        return None

    async def _reconnect_loop(self, delay: float) -> None:
        next_delay: Optional[float] = delay
        while next_delay is not None:
            await asyncio.sleep(next_delay)
            next_delay = await self._attempt_connection()

    def _start_reconnect(self, delay: float) -> None:
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return
        self._reconnect_task = asyncio.create_task(
            self._reconnect_loop(delay), name="redis-cache-reconnect"
        )

    def _connection_lost(self, error: BaseException) -> None:
        """Move a connected client into the retry cycle after a dropped connection."""
        if not self._connection.is_connected:
            return
        delay = self._connection.record_failure(error)
        if delay is not None:
            self._start_reconnect(delay)

    def _require_client(self, key: Optional[str]) -> redis.Redis:
        if self.redis_client is None or not self._connection.is_connected:
            raise CacheUnavailableError(
                f"Redis connection is {self._connection.state.value}", key=key
            )
        return self.redis_client

    async def _execute(
        self,
        operation: str,
        command: Callable[[redis.Redis], Awaitable[T]],
        key: Optional[str] = None,
    ) -> T:
        """Run one store command with timing and error translation."""
        client = self._require_client(key)
        started = time.perf_counter()
        try:
            return await command(client)
        except CONNECTION_LOST_ERRORS as e:
            self._connection_lost(e)
            raise CacheTransportError(f"Redis {operation} failed", key=key, cause=e) from e
        except (RedisError, OSError) as e:
            raise CacheTransportError(f"Redis {operation} failed", key=key, cause=e) from e
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000
            if elapsed_ms > self.config.slow_operation_ms:
                self._stats["slow_operations"] += 1
                self.logger.warning(
                    "Slow cache operation",
                    operation=operation,
                    key=key,
                    duration_ms=round(elapsed_ms, 2),
                )

    @staticmethod
    def _serialize(key: str, value: Any) -> str:
        try:
            return json.dumps(value)
        except (TypeError, ValueError) as e:
            raise CacheSerializationError("Value is not JSON serializable", key=key, cause=e) from e

    @staticmethod
    def _deserialize(key: str, raw: str) -> Any:
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            raise CacheSerializationError("Stored value is not valid JSON", key=key, cause=e) from e

    async def lookup(self, key: str) -> CacheResult:
        """Look up a key, distinguishing hit, miss and error.

        Args:
            key: Cache key

        Returns:
            ``HIT`` with the decoded value, ``MISS`` if absent, ``ERROR`` on any failure
        """
        try:
            raw = await self._execute("get", lambda client: client.get(key), key)
            if raw is None:
                self._stats["misses"] += 1
                self.logger.debug("Cache miss", key=key)
                return CacheResult.absent()
            value = self._deserialize(key, raw)
        except Exception as e:  # pylint: disable=broad-exception-caught
            self._stats["errors"] += 1
            self.logger.warning("Cache get failed", key=key, error=str(e))
            return CacheResult.from_error(e)

        self._stats["hits"] += 1
        self.logger.debug("Cache hit", key=key)
        return CacheResult.found(value)

    async def get(self, key: str) -> Any:
        """Get a cached value, or None when absent or on any failure."""
        result = await self.lookup(key)
        return result.value

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        """Store a JSON-serializable value with an expiration.

        Args:
            key: Cache key
            value: Value to cache
            ttl_seconds: Time to live in seconds (defaults to ``ttl_default``, one hour)

        Returns:
            True if the value was stored
        """
        if ttl_seconds is None:
            ttl_seconds = self.config.ttl_default

        try:
            if ttl_seconds <= 0:
                raise CacheError(f"TTL must be positive, got {ttl_seconds}", key=key)
            payload = self._serialize(key, value)
            await self._execute(
                "setex", lambda client: client.setex(key, ttl_seconds, payload), key
            )
        except Exception as e:  # pylint: disable=broad-exception-caught
            self._stats["errors"] += 1
            self.logger.error("Cache set failed", key=key, error=str(e))
            return False

        self._stats["sets"] += 1
        self.logger.debug("Cache set", key=key, ttl=ttl_seconds)
        return True

    async def delete(self, key: str) -> bool:
        """Delete one entry. True when the command succeeded, even if the key was absent."""
        try:
            deleted = await self._execute("del", lambda client: client.delete(key), key)
        except Exception as e:  # pylint: disable=broad-exception-caught
            self._stats["errors"] += 1
            self.logger.error("Cache delete failed", key=key, error=str(e))
            return False

        if deleted:
            self._stats["deletes"] += 1
        self.logger.debug("Cache delete", key=key, deleted=bool(deleted))
        return True

    async def flush(self) -> bool:
        """Remove every key in the Redis database.

        Destructive and store-wide: this runs FLUSHALL, so entries written by
        other applications sharing the store are removed too, not just this
        client's namespace. Administrative use only.
        """
        try:
            await self._execute("flushall", lambda client: client.flushall())
        except Exception as e:  # pylint: disable=broad-exception-caught
            self._stats["errors"] += 1
            self.logger.error("Cache flush failed", error=str(e))
            return False

        self.logger.warning("Cache flushed", scope="store-wide")
        return True

    async def health_check(self) -> bool:
        """Check that the store answers PING."""
        try:
            return bool(await self._execute("ping", lambda client: client.ping()))
        except Exception as e:  # pylint: disable=broad-exception-caught
            self.logger.debug("Cache health check failed", error=str(e))
            return False

    def stats(self) -> dict[str, Any]:
        """Get operation counters and connection state."""
        lookups = self._stats["hits"] + self._stats["misses"]
        return {
            **self._stats,
            "hit_rate": (self._stats["hits"] / max(1, lookups)) * 100,
            "connection": self._connection.snapshot(),
        }
