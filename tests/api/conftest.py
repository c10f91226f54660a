"""API test configuration and fixtures."""

from collections.abc import AsyncGenerator, Callable
from typing import Any

import pytest
import pytest_asyncio
from fastapi import FastAPI, HTTPException
from fastapi.responses import PlainTextResponse
from httpx import ASGITransport, AsyncClient

from portal_cache.api.middleware import ResponseCacheMiddleware
from portal_cache.caching.redis_cache import RedisCacheClient


class DownstreamCalls:
    """Counts how often each route handler actually ran."""

    def __init__(self):
        self.counts: dict[str, int] = {}

    def hit(self, name: str) -> int:
        self.counts[name] = self.counts.get(name, 0) + 1
        return self.counts[name]

    def __getitem__(self, name: str) -> int:
        return self.counts.get(name, 0)


def _build_portal_app(cache: Any, ttl_seconds: int = 300) -> tuple[FastAPI, DownstreamCalls]:
    """Small portal-like API with the response cache installed."""
    app = FastAPI()
    calls = DownstreamCalls()

    @app.get("/applications")
    async def list_applications(status: str | None = None, page: int = 1):
        call = calls.hit("list_applications")
        return {"items": [{"id": "A-1029", "status": status or "any"}], "page": page, "call": call}

    @app.post("/applications")
    async def create_application():
        calls.hit("create_application")
        return {"id": "A-2000"}

    @app.get("/applications/{application_id}")
    async def get_application(application_id: str):
        calls.hit("get_application")
        if application_id == "missing":
            raise HTTPException(status_code=404, detail="Application not found")
        return {"id": application_id}

    @app.get("/admit-card")
    async def admit_card():
        calls.hit("admit_card")
        return PlainTextResponse("ADMIT CARD")

    app.add_middleware(ResponseCacheMiddleware, cache=cache, ttl_seconds=ttl_seconds)
    return app, calls


@pytest.fixture
def build_portal_app() -> Callable[..., tuple[FastAPI, DownstreamCalls]]:
    """Factory building the portal app around a given cache."""
    return _build_portal_app


@pytest.fixture
def make_client() -> Callable[[Any], AsyncClient]:
    """Factory for async clients bound to an ASGI app."""

    def _make(app: Any) -> AsyncClient:
        return AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver")

    return _make


@pytest_asyncio.fixture
async def portal(
    cache_client: RedisCacheClient, make_client
) -> AsyncGenerator[tuple[AsyncClient, DownstreamCalls], None]:
    """Async client for the portal app backed by a connected cache."""
    app, calls = _build_portal_app(cache_client)
    async with make_client(app) as client:
        yield client, calls
