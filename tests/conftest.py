"""
tests/conftest.py -- Shared test fixtures for Monitorium.

This module provides:
  - FakeClock: a manually advanced clock for TTLCache expiry tests
  - store / cache / tokens / service: isolated unit-level collaborators
  - _patch_lifespan(): wires test collaborators into app.state, bypassing real startup
  - api_client: TestClient with an admin token for API integration tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
for api_client because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread. The named URI format
(file:name?mode=memory&cache=shared&uri=true) shares one in-memory instance
across all connections in the same process.

The environment must be set before any api/auth/core import:
  DEBUG=true              get_settings() auto-generates SECRET_KEY
  BCRYPT_ROUNDS=4         keeps hashing fast
  RATE_LIMIT_ENABLED=false  the shared limiter would otherwise throttle tests
  LOG_DIR=""              no log files written during tests
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set before any auth/core import so get_settings() sees them.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("LOG_DIR", "")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import Role, User
from auth.service import UserService
from auth.store import UserStore
from auth.tokens import TokenService, hash_password
from cache.store import TTLCache
from core.config import get_settings

ADMIN_EMAIL = "admin@monitorium.io"
ADMIN_PASSWORD = "adminpass123"


class FakeClock:
    """Callable clock that only moves when advance() is called."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Unit-level fixtures -- fresh collaborators for every test
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    user_store = UserStore(db_url="sqlite:///:memory:")
    yield user_store
    user_store.close()


@pytest.fixture
def cache(clock: FakeClock) -> TTLCache:
    return TTLCache(default_ttl=600, check_period=0, clock=clock)


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(get_settings().secret_key)


@pytest.fixture
def service(store: UserStore, cache: TTLCache, tokens: TokenService) -> UserService:
    return UserService(store=store, cache=cache, tokens=tokens, user_cache_ttl=300, starting_balance=10)


# ---------------------------------------------------------------------------
# Integration fixtures
# ---------------------------------------------------------------------------


def _make_test_store(db_suffix: str) -> UserStore:
    """Create an isolated named shared-memory SQLite store.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    return UserStore(db_url=f"sqlite:///file:test_users_{db_suffix}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(user_service: UserService):
    """Return an async context manager that replaces the real lifespan.

    Wires the pre-built service and its collaborators into app.state so
    TestClient routes see an isolated test DB rather than the configured
    database. The purge_task is a long-sleeping coroutine so shutdown has a
    real asyncio.Task to cancel.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_service.store
        app.state.cache = user_service.cache
        app.state.tokens = user_service.tokens
        app.state.user_service = user_service
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, str, str], None, None]:
    """Yield (client, admin_token, admin_id) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so
    tests hit real route handlers, middleware and exception handlers while
    using an isolated in-memory store. The admin account is inserted
    directly through the store since registration never grants ADMIN.
    """
    user_store = _make_test_store(uuid.uuid4().hex[:8])
    tokens = TokenService(get_settings().secret_key)
    user_service = UserService(store=user_store, cache=TTLCache(), tokens=tokens)

    admin_id = user_store.create_user(
        User(
            email=ADMIN_EMAIL,
            name="Site Admin",
            role=Role.ADMIN.value,
            hashed_password=hash_password(ADMIN_PASSWORD),
            verified=True,
        )
    )
    admin_token = tokens.issue(admin_id, ADMIN_EMAIL, Role.ADMIN.value)

    app.router.lifespan_context = _patch_lifespan(user_service)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, admin_token, admin_id

    user_store.close()
