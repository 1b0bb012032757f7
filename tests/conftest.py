"""
tests/conftest.py -- Shared test fixtures for Hired Valley integration tests.

This module provides:
  - make_test_settings(): Settings with every OAuth provider configured
  - _make_test_store(): isolated in-memory auth DB
  - _patch_lifespan(): wires test resources into app.state, bypassing real startup
  - api_client: TestClient + admin JWT for JSON API tests
  - web_client: TestClient with follow_redirects=False for OAuth browser routes
  - store: a fresh file-backed UserStore per test, for unit tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.

The DEBUG and ALLOWED_HOSTS env vars must be set before any app import:
get_settings() then auto-generates SECRET_KEY in dev mode instead of raising,
and TrustedHostMiddleware accepts TestClient's "testserver" Host header.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set env before any api/auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost", "127.0.0.1"]')

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from asgi import app
from auth.models import User
from auth.oauth import build_oauth_registry
from auth.passwords import hash_password
from auth.store import UserStore
from auth.tokens import TokenIssuer
from core.config import Settings

# Rate limiting has its own test; everywhere else it would make login-heavy
# modules flaky.
limiter.enabled = False

TEST_SECRET = "test-secret-key-for-hiredvalley-tests-0123456789"


def make_test_settings(**overrides) -> Settings:
    """Settings with google, linkedin and youtube all fully configured."""
    values = dict(
        debug=True,
        secret_key=TEST_SECRET,
        token_expire_seconds=3600,
        google_client_id="google-client-id",
        google_client_secret="google-client-secret",
        google_redirect_url="http://testserver/callback/google",
        linkedin_client_id="linkedin-client-id",
        linkedin_client_secret="linkedin-client-secret",
        linkedin_redirect_url="http://testserver/callback/linkedin",
        youtube_redirect_url="http://testserver/callback/youtube",
        oauth_success_url="/welcome",
        oauth_failure_url="/",
    )
    values.update(overrides)
    return Settings(**values)


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_store(db_suffix: str) -> UserStore:
    """Create an isolated named shared-memory SQLite store.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state (e.g. 'api', 'web').
    """
    return UserStore(db_url=f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(user_store: UserStore, settings: Settings):
    """Return an async context manager that replaces the real lifespan.

    Uses a real authlib registry built from the test settings. Building it
    makes no network calls; tests that need provider responses swap in a
    mock registry (see the fake_oauth fixture in test_oauth_callback.py).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = settings
        app.state.user_store = user_store
        app.state.token_issuer = TokenIssuer(settings.secret_key, settings.token_expire_seconds)
        app.state.oauth = build_oauth_registry(settings)
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, str, int], None, None]:
    """Yield (client, admin_token, admin_id) for API integration tests.

    The admin is created directly in the store, since self-service
    registration cannot grant the admin role.
    """
    user_store = _make_test_store(f"api_{request.module.__name__}")
    settings = make_test_settings()

    admin = User(
        email="admin@hiredvalley.test",
        name="Test Admin",
        role="admin",
        hashed_password=hash_password("adminpass123"),
    )
    uid = user_store.create_user(admin)
    token = TokenIssuer(settings.secret_key, 3600).issue(uid, admin.email, "admin")

    app.router.lifespan_context = _patch_lifespan(user_store, settings)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, uid

    user_store.close()


@pytest.fixture(scope="module")
def web_client(request) -> Generator[TestClient, None, None]:
    """Yield a TestClient for the browser OAuth routes.

    follow_redirects=False is essential: tests assert on redirect locations,
    which are invisible once the client follows the redirect.
    """
    user_store = _make_test_store(f"web_{request.module.__name__}")
    app.router.lifespan_context = _patch_lifespan(user_store, make_test_settings())

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield client

    user_store.close()


@pytest.fixture
def store(tmp_path) -> Generator[UserStore, None, None]:
    """A fresh file-backed UserStore for unit tests."""
    user_store = UserStore(f"sqlite:///{tmp_path / 'auth.db'}")
    yield user_store
    user_store.close()
