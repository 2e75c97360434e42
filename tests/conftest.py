"""
tests/conftest.py -- Shared test fixtures for userkeep.

This module provides:
  - store: a fresh in-memory UserStore per test
  - make_user(): validate-free helper that hashes and persists a user
  - issue_token(): writes a tokens row the way the upstream issuer does
  - api_client: TestClient wired to an isolated store, plus a valid token

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
api_client because TestClient runs route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

BCRYPT_ROUNDS must be set before any auth import: auth.tokens reads the
settings singleton at module load and hashes its timing dummy immediately.
"""

from __future__ import annotations

import os
import secrets
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: Set before any auth/core import so get_settings() sees them.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import User
from auth.store import UserStore, _tokens, iso_utc
from auth.tokens import hash_token

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_user(store: UserStore, name: str, email: str, password: str = "longenough1") -> User:
    user = User(name=name, email=email)
    user.password.set(password)
    store.create_user(user)
    return user


def _issue_token(
    store: UserStore,
    user_id: int,
    scope: str = "authentication",
    ttl: timedelta = timedelta(hours=1),
) -> str:
    """Insert a token row for user_id and return the raw token.

    Mirrors the upstream issuer: only the SHA-256 digest is stored, with an
    iso_utc() expiry. A negative ttl produces an already-expired token.
    """
    raw = secrets.token_urlsafe(24)
    expiry = iso_utc(datetime.now(timezone.utc) + ttl)
    with store.engine.connect() as conn:
        conn.execute(_tokens.insert().values(hash=hash_token(raw), user_id=user_id, scope=scope, expiry=expiry))
        conn.commit()
    return raw


# ---------------------------------------------------------------------------
# Store fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def make_user(store: UserStore) -> Callable[..., User]:
    def factory(name: str, email: str, password: str = "longenough1") -> User:
        return _make_user(store, name, email, password)

    return factory


@pytest.fixture
def issue_token(store: UserStore) -> Callable[..., str]:
    def factory(user_id: int, scope: str = "authentication", ttl: timedelta = timedelta(hours=1)) -> str:
        return _issue_token(store, user_id, scope, ttl)

    return factory


# ---------------------------------------------------------------------------
# API fixture -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore):
    """Return an async context manager that replaces the real lifespan.

    Wires the pre-created test store into app.state so TestClient routes see
    an isolated test DB rather than the production database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, UserStore, str, int], None, None]:
    """Yield (client, store, token, user_id) for API integration tests.

    The account "Grace" / grace@example.com / "testpass123" exists before the
    client starts, and token is a live "authentication" token for it.
    """
    db_name = f"test_users_{request.module.__name__.rsplit('.', 1)[-1]}"
    user_store = UserStore(f"sqlite:///file:{db_name}?mode=memory&cache=shared&uri=true")

    grace = _make_user(user_store, "Grace", "grace@example.com", "testpass123")
    token = _issue_token(user_store, grace.id)

    app.router.lifespan_context = _patch_lifespan(user_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, user_store, token, grace.id

    user_store.close()


@pytest.fixture
def api_issue_token(api_client) -> Callable[..., str]:
    """issue_token() bound to the api_client store."""
    _client, user_store, _token, _uid = api_client

    def factory(user_id: int, scope: str = "authentication", ttl: timedelta = timedelta(hours=1)) -> str:
        return _issue_token(user_store, user_id, scope, ttl)

    return factory


@pytest.fixture
def issue_token_row() -> Callable[..., str]:
    """The raw _issue_token(store, user_id, scope, ttl) helper, for stores built inside a test."""
    return _issue_token
