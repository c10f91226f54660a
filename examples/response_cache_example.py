#!/usr/bin/env python3
"""
Example API serving cached GET responses from Redis.

Prerequisites:
1. Start Redis server: redis-server (or set REDIS_HOST / REDIS_PORT)
2. Install the package: pip install -e .
3. Run: python examples/response_cache_example.py
4. Request http://127.0.0.1:8000/applications twice; the second response
   carries ``X-Cache: HIT``. Stop Redis and requests keep working uncached.
"""

import asyncio

import uvicorn
from fastapi import FastAPI

from portal_cache.api.lifespan import cache_lifespan
from portal_cache.api.middleware import ResponseCacheMiddleware
from portal_cache.api.routers.cache_health import create_cache_health_router
from portal_cache.caching import CacheConfig, RedisCacheClient
from portal_cache.constants import CONSTANTS
from portal_cache.utils.logging import setup_logging


def create_app(cache: RedisCacheClient) -> FastAPI:
    """Build a demo API with the response cache in front of a slow endpoint."""
    app = FastAPI(title="Response cache example", lifespan=cache_lifespan(cache))

    @app.get("/applications")
    async def list_applications(status: str = "submitted"):
        await asyncio.sleep(1)  # Stand-in for a slow database query
        return {"status": status, "items": [{"id": "A-1029", "course": "BSc"}]}

    app.include_router(create_cache_health_router(cache))
    app.add_middleware(
        ResponseCacheMiddleware, cache=cache, ttl_seconds=CONSTANTS.RESPONSE_CACHE_TTL
    )
    return app


if __name__ == "__main__":
    setup_logging(verbose=True)
    uvicorn.run(create_app(RedisCacheClient(CacheConfig())), host="127.0.0.1", port=8000)
