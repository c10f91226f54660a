"""Tests for cache lifespan wiring and the cache health endpoint."""

from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from redis.exceptions import ConnectionError as RedisConnectionError

from portal_cache.api.lifespan import cache_lifespan
from portal_cache.api.routers.cache_health import create_cache_health_router
from portal_cache.caching.base import CacheConfig, ConnectionState
from portal_cache.caching.reconnect import ReconnectPolicy
from portal_cache.caching.redis_cache import RedisCacheClient


class TestCacheLifespan:
    """Test startup and shutdown of the cache client."""

    @pytest.mark.asyncio
    async def test_lifespan_connects_and_closes(self, fake_redis, fake_clock, patch_redis):
        """Test the client is connected during the app's life and closed after."""
        patch_redis(fake_redis)
        cache = RedisCacheClient(CacheConfig(), clock=fake_clock)
        app = FastAPI()

        async with cache_lifespan(cache)(app):
            assert app.state.cache is cache
            assert cache.state is ConnectionState.CONNECTED

        assert cache.redis_client is None

    @pytest.mark.asyncio
    async def test_lifespan_starts_without_store(self, patch_redis, fake_clock):
        """Test startup succeeds even when the store refuses connections."""
        mock_client = AsyncMock()
        mock_client.ping.side_effect = RedisConnectionError("Connection refused")
        patch_redis(mock_client)
        cache = RedisCacheClient(CacheConfig(), ReconnectPolicy(max_attempts=0), clock=fake_clock)
        app = FastAPI()

        async with cache_lifespan(cache)(app):
            assert cache.state is ConnectionState.FAILED


class TestCacheHealthRouter:
    """Test GET /health/cache."""

    @pytest.mark.asyncio
    async def test_reports_healthy_cache(self, cache_client, make_client):
        """Test a reachable store is reported healthy with stats."""
        app = FastAPI()
        app.include_router(create_cache_health_router(cache_client))

        async with make_client(app) as client:
            response = await client.get("/health/cache")

        body = response.json()
        assert response.status_code == 200
        assert body["status"] == "healthy"
        assert body["connected"] is True
        assert body["stats"]["connection"]["state"] == "connected"

    @pytest.mark.asyncio
    async def test_reports_degraded_cache(self, make_client):
        """Test an unconnected client is reported degraded, not as an error."""
        app = FastAPI()
        app.include_router(create_cache_health_router(RedisCacheClient(CacheConfig())))

        async with make_client(app) as client:
            response = await client.get("/health/cache")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
        assert response.json()["stats"]["connection"]["state"] == "connecting"
