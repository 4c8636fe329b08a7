"""
tests/conftest.py -- Shared test fixtures for cookie-auth.

This module provides:
  - hasher / key / repository / store / service: the auth core wired against
    a throwaway SQLite file per test (unit tests, async via pytest-asyncio)
  - _make_test_auth(): builds an AuthService over a named shared-memory DB
  - _patch_lifespan(): wires that service into app.state, bypassing real startup
  - api_client / web_client: TestClient instances for integration tests
  - session_cookie(): pulls the session cookie value out of a response

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because the store runs queries on worker threads (asyncio.to_thread). Plain
':memory:' DBs are per-connection and would present a blank schema to each
worker. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

Environment must be set before any api/ or core/ import: DEBUG lets
get_settings() generate a SECRET_KEY, the PASSWORD_* values make Argon2 cheap
enough for a test run, and ALLOWED_HOSTS admits TestClient's "testserver".
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("PASSWORD_TIME_COST", "1")
os.environ.setdefault("PASSWORD_MEMORY_COST", "1024")
os.environ.setdefault("PASSWORD_PARALLELISM", "1")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')

import pytest
from fastapi.testclient import TestClient

from asgi import app
from auth.keys import SigningKey
from auth.passwords import CredentialHasher
from auth.service import AuthService
from auth.store import UserRepository, UserStore

# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def hasher() -> CredentialHasher:
    """Argon2id hasher with the cheapest parameters argon2-cffi accepts for p=1."""
    return CredentialHasher(time_cost=1, memory_cost=1024, parallelism=1)


@pytest.fixture
def key() -> SigningKey:
    return SigningKey.generate()


@pytest.fixture
def repository(tmp_path) -> Generator[UserRepository, None, None]:
    repo = UserRepository(f"sqlite:///{tmp_path / 'auth.db'}")
    yield repo
    repo.close()


@pytest.fixture
def store(repository: UserRepository, hasher: CredentialHasher) -> UserStore:
    return UserStore(repository, hasher)


@pytest.fixture
def service(store: UserStore, key: SigningKey) -> AuthService:
    return AuthService(store, key, ttl=3600)


# ---------------------------------------------------------------------------
# App helpers
# ---------------------------------------------------------------------------


def session_cookie(resp, name: str = "session") -> str | None:
    """Return the raw value of the named cookie from a response's Set-Cookie headers.

    Read straight from the headers: the session cookie is Secure, so httpx's
    cookie jar would never replay it over TestClient's plain-http transport.
    """
    for header in resp.headers.get_list("set-cookie"):
        cookie_name, _, rest = header.partition("=")
        if cookie_name.strip() == name:
            value = rest.split(";", 1)[0]
            return value.strip('"')
    return None


def set_cookie_header(resp, name: str = "session") -> str | None:
    """Return the full Set-Cookie header for the named cookie."""
    for header in resp.headers.get_list("set-cookie"):
        if header.startswith(f"{name}="):
            return header
    return None


def _make_test_auth(db_suffix: str, hasher: CredentialHasher) -> tuple[AuthService, UserRepository]:
    """Create an AuthService backed by an isolated named shared-memory SQLite DB.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state (e.g. 'api', 'web').
    """
    repo = UserRepository(f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true")
    service = AuthService(UserStore(repo, hasher), SigningKey.generate(), ttl=3600)
    return service, repo


def _patch_lifespan(service: AuthService, repo: UserRepository):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.auth = service
        app.state.user_repository = repo
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(hasher: CredentialHasher) -> Generator[TestClient, None, None]:
    """TestClient for JSON API tests, over its own in-memory user DB."""
    service, repo = _make_test_auth("api", hasher)
    original = app.router.lifespan_context
    app.router.lifespan_context = _patch_lifespan(service, repo)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client

    app.router.lifespan_context = original
    repo.close()


@pytest.fixture(scope="module")
def web_client(hasher: CredentialHasher) -> Generator[TestClient, None, None]:
    """TestClient for HTML routes.

    follow_redirects=False is essential: the web routes answer every form post
    with a 303, and the tests assert on its Location and Set-Cookie headers.
    """
    service, repo = _make_test_auth("web", hasher)
    original = app.router.lifespan_context
    app.router.lifespan_context = _patch_lifespan(service, repo)

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield client

    app.router.lifespan_context = original
    repo.close()
