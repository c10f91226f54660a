"""Application lifespan wiring for the cache client."""

from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager

import structlog
from fastapi import FastAPI

from ..caching.redis_cache import RedisCacheClient

logger = structlog.get_logger(__name__)


def cache_lifespan(
    cache: RedisCacheClient,
) -> Callable[[FastAPI], AbstractAsyncContextManager[None]]:
    """Build a FastAPI lifespan that connects the cache on startup and closes it on shutdown.

    Startup never fails because of the cache: an unreachable store leaves the
    client retrying in the background while requests are served uncached.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.cache = cache
        connected = await cache.initialize()
        if not connected:
            logger.warning("Starting without cache connection", state=cache.state.value)

        yield

        await cache.close()

    return lifespan
