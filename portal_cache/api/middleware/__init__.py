"""API middleware modules for request processing."""

from .response_cache import ResponseCacheMiddleware, build_cache_key

__all__ = [
    "ResponseCacheMiddleware",
    "build_cache_key",
]
