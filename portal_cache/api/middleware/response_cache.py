"""Middleware that memoizes successful GET JSON responses in the cache client.

Entries are never invalidated when the underlying data changes; a reader may
see a response up to ``ttl_seconds`` old after a write elsewhere. That bound
is the whole consistency guarantee of this layer.
"""

import asyncio
import json
from collections.abc import Callable
from typing import Any

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from ...caching.base import CacheResult
from ...caching.redis_cache import RedisCacheClient
from ...constants import CONSTANTS

logger = structlog.get_logger(__name__)


def build_cache_key(request: Request, namespace: str = CONSTANTS.RESPONSE_CACHE_NAMESPACE) -> str:
    """Derive the cache key for a request from its path and query string.

    Args:
        request: Incoming HTTP request
        namespace: Prefix separating these entries from other data in the store

    Returns:
        ``namespace:/path?query`` (no ``?`` when the query string is empty)
    """
    target = request.url.path
    if request.url.query:
        target = f"{target}?{request.url.query}"
    return f"{namespace}{CONSTANTS.KEY_SEPARATOR}{target}"


def _is_json(response: Response) -> bool:
    content_type = response.headers.get("content-type", "")
    return content_type.split(";", 1)[0].strip().lower() == CONSTANTS.JSON_MEDIA_TYPE


class ResponseCacheMiddleware(BaseHTTPMiddleware):  # pylint: disable=too-few-public-methods
    """Serve repeated GET requests from the cache and populate it on misses."""

    def __init__(
        self,
        app,
        cache: RedisCacheClient,
        ttl_seconds: int = CONSTANTS.RESPONSE_CACHE_TTL,
        namespace: str = CONSTANTS.RESPONSE_CACHE_NAMESPACE,
    ):
        """Initialize response cache middleware.

        Args:
            app: ASGI application
            cache: Cache client shared by the process
            ttl_seconds: How long a cached response remains valid
            namespace: Key prefix for cached responses

        Raises:
            ValueError: If ttl_seconds is not positive
        """
        super().__init__(app)
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.cache = cache
        self.ttl_seconds = ttl_seconds
        self.namespace = namespace
        self._pending_writes: set[asyncio.Task] = set()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request through the response cache.

        Args:
            request: Incoming HTTP request
            call_next: Next middleware/handler

        Returns:
            Cached response on a hit, otherwise the downstream response
        """
        if request.method not in CONSTANTS.CACHEABLE_METHODS:
            return await call_next(request)

        key = build_cache_key(request, self.namespace)

        try:
            result = await self.cache.lookup(key)
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.warning("Response cache lookup failed", key=key, error=str(e))
            result = CacheResult.from_error(e)

        if result.hit:
            logger.debug("Response cache hit", key=key)
            return JSONResponse(
                content=result.value,
                status_code=CONSTANTS.HTTP_STATUS_OK,
                headers={CONSTANTS.CACHE_STATUS_HEADER: CONSTANTS.CACHE_STATUS_HIT},
            )

        logger.debug("Response cache miss", key=key, lookup=result.outcome.value)
        response = await call_next(request)
        return await self._capture(key, response)

    async def _capture(self, key: str, response: Response) -> Response:
        """Forward the downstream response and schedule storing it if cacheable."""
        if response.status_code != CONSTANTS.HTTP_STATUS_OK or not _is_json(response):
            response.headers[CONSTANTS.CACHE_STATUS_HEADER] = CONSTANTS.CACHE_STATUS_MISS
            return response

        body = b"".join([chunk async for chunk in response.body_iterator])

        forwarded = Response(
            content=body,
            status_code=response.status_code,
            background=response.background,
        )
        forwarded.raw_headers = list(response.raw_headers)
        forwarded.headers[CONSTANTS.CACHE_STATUS_HEADER] = CONSTANTS.CACHE_STATUS_MISS

        try:
            payload = json.loads(body)
        except ValueError as e:
            logger.debug("Response body is not valid JSON, not caching", key=key, error=str(e))
            return forwarded

        self._schedule_store(key, payload)
        return forwarded

    def _schedule_store(self, key: str, payload: Any) -> None:
        # Runs independently of the request so an aborted client cannot cancel it
        task = asyncio.create_task(self._store(key, payload))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def _store(self, key: str, payload: Any) -> None:
        try:
            stored = await self.cache.set(key, payload, self.ttl_seconds)
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.warning("Response cache store failed", key=key, error=str(e))
            return

        if stored:
            logger.debug("Response cached", key=key, ttl=self.ttl_seconds)
