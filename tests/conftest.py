"""
tests/conftest.py -- Shared test fixtures for homehost auth tests.

This module provides:
  - component fixtures (hasher, tokens, revocations, user_store, auth_service)
    built the same way the lifespan builds them, with bcrypt cost 4 for speed
  - _patch_lifespan(): wires a test user store into app.state, bypassing the
    real startup
  - api_client: TestClient over the real ASGI stack with an isolated store

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. Each fixture instance gets its own uuid-named database.

Environment variables must be set before any api/core import so the cached
Settings singleton (and the limiter built from it) sees them.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: set before importing anything that calls get_settings().
TEST_SECRET = "test-secret-key-for-homehost-0123456789abcdef"
os.environ["JWT_SECRET"] = TEST_SECRET
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ALLOWED_HOSTS"] = '["testserver", "localhost"]'
os.environ["ENVIRONMENT"] = "development"

import pytest
from fastapi.testclient import TestClient

from api.main import app, install_auth
from auth.passwords import PasswordHasher
from auth.revocation import RevocationStore
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import get_settings

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _memory_db_url() -> str:
    return f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


def _patch_lifespan(user_store: UserStore):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        install_auth(app, get_settings(), user_store)
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Component fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(TEST_SECRET)


@pytest.fixture
def revocations(tokens: TokenService) -> RevocationStore:
    return RevocationStore(tokens)


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore(_memory_db_url())
    yield store
    store.close()


@pytest.fixture
def auth_service(user_store, hasher, tokens, revocations) -> AuthService:
    return AuthService(user_store, hasher, tokens, revocations)


# ---------------------------------------------------------------------------
# HTTP fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def api_client() -> Generator[TestClient, None, None]:
    """Yield a TestClient backed by a fresh, empty user store.

    The real app and routes are used; only the lifespan is swapped so the
    store is an isolated in-memory database.
    """
    store = UserStore(_memory_db_url())
    app.router.lifespan_context = _patch_lifespan(store)

    with TestClient(app, raise_server_exceptions=False) as client:
        yield client

    store.close()


@pytest.fixture
def use_token():
    """Return a helper that makes a client send exactly one session cookie."""

    def _use(client: TestClient, token: str) -> None:
        client.cookies.clear()
        client.cookies.set(get_settings().cookie_name, token)

    return _use
