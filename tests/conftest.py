"""
tests/conftest.py -- Shared test fixtures for Warden.

This module provides:
  - store / hasher / secret_key / controller: isolated auth components per test
  - _patch_lifespan(): wires test components into app.state, bypassing real startup
  - client: TestClient over the real FastAPI app backed by the per-test store
  - signup_and_login(): helper that returns a bearer token for a fresh user

Design: every test gets its own SQLite file under pytest's tmp_path. Plain
:memory: DBs are per-connection and TestClient runs sync route handlers in a
thread pool, so each worker thread would see a blank schema. A throwaway
file DB is shared by every connection and vanishes with the tmp dir, so no
state leaks between tests.

DEBUG, ALLOWED_HOSTS and BCRYPT_ROUNDS must be set before api.main is
imported: it reads Settings once at import time.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set env before any api/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.controller import AuthController
from auth.passwords import PasswordHasher
from auth.store import UserStore

TEST_SECRET_KEY = "test-secret-key-0123456789abcdef0123456789abcdef"

# ---------------------------------------------------------------------------
# Component fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store(tmp_path) -> Generator[UserStore, None, None]:
    s = UserStore(db_url=f"sqlite:///{tmp_path / 'auth.db'}", timeout=1.0)
    yield s
    s.close()


@pytest.fixture
def hasher() -> PasswordHasher:
    """Minimum bcrypt cost -- the work factor is not what these tests check."""
    return PasswordHasher(rounds=4)


@pytest.fixture
def secret_key() -> str:
    return TEST_SECRET_KEY


@pytest.fixture
def controller(store: UserStore, hasher: PasswordHasher, secret_key: str) -> AuthController:
    return AuthController(store, hasher, secret_key)


# ---------------------------------------------------------------------------
# App fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(controller: AuthController, secret_key: str):
    """Return an async context manager that replaces the real lifespan.

    Wires the per-test store, controller and signing key into app.state so
    TestClient routes see an isolated DB rather than the configured one.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = controller.store
        app.state.secret_key = secret_key
        app.state.auth_controller = controller
        yield

    return test_lifespan


@pytest.fixture
def client(controller: AuthController, secret_key: str) -> Generator[TestClient, None, None]:
    """TestClient over the real app with the per-test controller wired in."""
    app.router.lifespan_context = _patch_lifespan(controller, secret_key)
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c


@pytest.fixture
def quiet_client(controller: AuthController, secret_key: str) -> Generator[TestClient, None, None]:
    """Like client, but unhandled exceptions become 500 responses instead of raising."""
    app.router.lifespan_context = _patch_lifespan(controller, secret_key)
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def signup_and_login(client: TestClient, username: str, email: str, password: str = "secret1", role=None) -> str:
    """Create an account over HTTP and return its access token."""
    body = {"username": username, "email": email, "password": password}
    if role is not None:
        body["role"] = role
    resp = client.post("/signup", json=body)
    assert resp.status_code == 201, resp.text
    resp = client.post("/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()["token"]
