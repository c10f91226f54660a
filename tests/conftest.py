"""Shared fixtures and test configuration for pytest."""

import asyncio

import pytest
import pytest_asyncio
import structlog

from portal_cache.caching import redis_cache as redis_cache_module
from portal_cache.caching.base import CacheConfig
from portal_cache.caching.redis_cache import RedisCacheClient

# Configure structlog before any module caches a logger with default configuration
structlog.reset_defaults()
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.processors.StackInfoRenderer(),
        structlog.dev.ConsoleRenderer(exception_formatter=structlog.dev.plain_traceback),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    context_class=dict,
    cache_logger_on_first_use=False,  # Don't cache during tests to allow reconfiguration
)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRedis:
    """In-memory stand-in for the handful of Redis commands the client issues."""

    def __init__(self, clock: FakeClock):
        self._clock = clock
        self._data: dict[str, tuple[str, float]] = {}

    async def ping(self) -> bool:
        return True

    async def get(self, key: str):
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    async def setex(self, key: str, ttl: int, value: str) -> bool:
        self._data[key] = (value, self._clock() + ttl)
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._data.pop(key, None) is not None:
                removed += 1
        return removed

    async def flushall(self) -> bool:
        self._data.clear()
        return True

    async def aclose(self) -> None:
        return None

    def keys(self) -> list[str]:
        return list(self._data)

    def raw(self, key: str) -> str:
        return self._data[key][0]

    def put_raw(self, key: str, value: str, ttl: int = 60) -> None:
        self._data[key] = (value, self._clock() + ttl)


@pytest.fixture
def fake_clock():
    """Clock shared by the fake store and the client's retry bookkeeping."""
    return FakeClock()


@pytest.fixture
def fake_redis(fake_clock):
    """In-memory Redis double."""
    return FakeRedis(fake_clock)


@pytest.fixture
def patch_redis(monkeypatch):
    """Replace redis.asyncio.Redis so the client builds the given object instead."""

    def _patch(instance):
        calls = []

        def factory(**kwargs):
            calls.append(kwargs)
            return instance

        monkeypatch.setattr(redis_cache_module.redis, "Redis", factory)
        return calls

    return _patch


@pytest_asyncio.fixture
async def cache_client(fake_redis, fake_clock, patch_redis):
    """Connected cache client backed by the in-memory store."""
    patch_redis(fake_redis)
    client = RedisCacheClient(CacheConfig(), clock=fake_clock)
    await client.initialize()
    yield client
    await client.close()


@pytest.fixture
def recorded_sleeps(monkeypatch):
    """Make asyncio.sleep return immediately, recording each requested delay."""
    delays: list[float] = []
    real_sleep = asyncio.sleep

    async def instant_sleep(delay, *args, **kwargs):
        delays.append(delay)
        await real_sleep(0)

    monkeypatch.setattr(asyncio, "sleep", instant_sleep)
    return delays


@pytest.fixture
def settle():
    """Let fire-and-forget tasks scheduled by the last request run to completion."""

    async def _settle() -> None:
        for _ in range(5):
            await asyncio.sleep(0)

    return _settle
