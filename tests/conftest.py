"""
tests/conftest.py -- Shared test fixtures for Inkwell unit and integration tests.

This module provides:
  - store / service: a fresh in-memory EntityStore and a SocialService on it
  - make_service(): build a SocialService with overridden policy settings
  - seed helpers: users(), blog() for terse test setup
  - _patch_lifespan(): wires a test store into app.state, bypassing real startup
  - api_client: TestClient on a named shared-memory database

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
for the API fixture because TestClient runs route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread. Unit tests that stay on one thread use plain :memory:
with a single pooled connection.

The environment must be set before any core/auth import so get_settings()
auto-generates SECRET_KEY, accepts the TestClient host, and uses cheap bcrypt.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set these before any auth/core import so get_settings() picks them up.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "4")
os.environ.setdefault("ALLOWED_HOSTS", '["*"]')

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.tokens import BcryptHasher, create_access_token
from core.config import Settings, get_settings
from core.service import SocialService
from storage.store import EntityStore

PASSWORD = "hunter22"


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[EntityStore, None, None]:
    s = EntityStore("sqlite:///:memory:")
    yield s
    s.close()


def make_service(store: EntityStore, **overrides) -> SocialService:
    """SocialService on store with Settings fields overridden by keyword."""
    settings = get_settings().model_copy(update=overrides)
    return SocialService(store, BcryptHasher(), settings)


@pytest.fixture
def service(store: EntityStore) -> SocialService:
    return make_service(store)


def register(service: SocialService, username: str) -> int:
    """Register username with a derived email and PASSWORD; return the new id."""
    env = service.register(username, f"{username}@example.com", PASSWORD)
    assert env.ok, env.error
    return env.value.id


def new_blog(service: SocialService, user_id: int, title: str = "First post") -> int:
    env = service.create_blog(title, "desc", "body text", ["python", "sql"], user_id)
    assert env.ok, env.error
    return env.value.id


# ---------------------------------------------------------------------------
# Integration fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(store: EntityStore, settings: Settings):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.store = store
        app.state.service = SocialService(store, BcryptHasher(), settings)
        yield

    return test_lifespan


def _client_for(settings: Settings) -> Generator[tuple[TestClient, EntityStore], None, None]:
    db_url = f"sqlite:///file:test_api_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    store = EntityStore(db_url)
    app.router.lifespan_context = _patch_lifespan(store, settings)
    limiter.reset()
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, store
    store.close()


@pytest.fixture
def api_client() -> Generator[tuple[TestClient, EntityStore], None, None]:
    """Yield (client, store) with session-derived actors (the default policy)."""
    yield from _client_for(get_settings())


@pytest.fixture
def trusting_client() -> Generator[tuple[TestClient, EntityStore], None, None]:
    """Yield (client, store) where the request body names the actor."""
    yield from _client_for(get_settings().model_copy(update={"trust_client_actor": True}))


def auth_headers(user_id: int, username: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id, username)}"}
