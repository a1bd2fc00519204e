"""
tests/conftest.py -- Shared test fixtures for AuthGate tests.

This module provides:
  - store: an isolated in-memory UserStore per test
  - api_client: TestClient over the real FastAPI app with a patched lifespan,
    the isolated store, and a MagicMock mailer

User builders and the FakeUsers lookup live in tests/factories.py.

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because route handlers offload store calls to a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.

Environment must be set before any auth/core import: DEBUG lets Settings
generate a SECRET_KEY, BCRYPT_ROUNDS keeps hashing fast, and the rate limits
are raised so repeated logins in one module are not throttled.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from unittest.mock import MagicMock

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("FORGOT_PASSWORD_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app, build_gate
from auth.store import UserStore

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def make_test_store() -> UserStore:
    """Create an isolated named shared-memory SQLite store."""
    return UserStore(db_url=f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(user_store: UserStore, mailer: MagicMock):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.auth_gate = build_gate(user_store)
        app.state.mailer = mailer
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = make_test_store()
    yield s
    s.close()


@pytest.fixture
def api_client(store: UserStore) -> Generator[tuple[TestClient, UserStore, MagicMock], None, None]:
    """Yield (client, store, mailer) for API integration tests.

    Tests hit real route handlers and gates; the mailer is a MagicMock so
    tests can read the plaintext OTP and tokens it was handed.
    """
    mailer = MagicMock()
    app.router.lifespan_context = _patch_lifespan(store, mailer)
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, store, mailer
