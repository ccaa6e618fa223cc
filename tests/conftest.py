"""
tests/conftest.py -- Shared test fixtures for TokenGate tests.

This module provides:
  - _make_test_service(): TokenService over an isolated in-memory store
  - _patch_lifespan(): wires the test service into app.state, bypassing real startup
  - api_client: TestClient for API integration tests
  - service: TokenService over a private sqlite:///:memory: store for unit tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the API client because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread. The named URI format
(file:name?mode=memory&cache=shared&uri=true) shares one in-memory instance
across all connections in the same process.

Environment must be set before any api/ import: api.main reads settings at
module load, and the login rate limit is kept high enough that the suite never
trips it.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Generator
from contextlib import asynccontextmanager

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOGIN_ACCOUNTS", '{"bob": "Omega123", "lewis": "Omega123"}')
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("TOKEN_FORBIDDEN_ON_ERROR", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.store import TokenStore
from auth.tokens import TokenService
from core.config import get_settings

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_service(db_suffix: str) -> TokenService:
    """Create a TokenService over an isolated named shared-memory SQLite store.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    store = TokenStore(f"sqlite:///file:test_tokens_{db_suffix}?mode=memory&cache=shared&uri=true")
    return TokenService(store, expire_seconds=3600)


def _patch_lifespan(service: TokenService):
    """Return an async context manager that replaces the real lifespan.

    The purge_task is a long-sleeping coroutine so shutdown can cancel a real
    asyncio.Task.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.token_store = service.store
        app.state.token_service = service
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, TokenService], None, None]:
    """Yield (client, service) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real route handlers and dependencies against an isolated store.
    """
    service = _make_test_service("api")
    app.router.lifespan_context = _patch_lifespan(service)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, service

    service.store.close()


@pytest.fixture
def store() -> Generator[TokenStore, None, None]:
    """Fresh private in-memory TokenStore."""
    s = TokenStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def service(store: TokenStore) -> TokenService:
    return TokenService(store, expire_seconds=3600)


@pytest.fixture
def settings():
    """The cached Settings singleton; patch fields with monkeypatch.setattr."""
    return get_settings()
