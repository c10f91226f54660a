"""Cache health and statistics endpoint."""

from typing import Any

from fastapi import APIRouter

from ...caching.redis_cache import RedisCacheClient


def create_cache_health_router(cache: RedisCacheClient) -> APIRouter:
    """Create a router reporting cache connectivity and operation counters.

    Behind ``ResponseCacheMiddleware`` this GET route is cached like any other,
    so its output can lag by up to the middleware TTL.

    Args:
        cache: Cache client to report on

    Returns:
        Router exposing ``GET /health/cache``
    """
    router = APIRouter(prefix="/health", tags=["Health & Monitoring"])

    @router.get("/cache")
    async def cache_health() -> dict[str, Any]:
        """Report whether the store answers PING, plus client statistics."""
        healthy = await cache.health_check()
        return {
            "status": "healthy" if healthy else "degraded",
            "connected": healthy,
            "stats": cache.stats(),
        }

    return router
