"""
tests/conftest.py -- Shared test fixtures for Aquarium Monitor.

This module provides:
  - memory_url(): named shared-memory SQLite URL for one test database
  - FakeBreachChecker: in-process stand-in for the Pwned Passwords client
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api: module-scoped ApiHarness (TestClient + an admin and a regular user)

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

DEBUG must be set before any core/auth import so get_settings() generates a
SECRET_KEY instead of raising. LOGIN_RATE_LIMIT is raised so the token
endpoint is not throttled across a whole test session.
"""

from __future__ import annotations

import itertools
import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# CRITICAL: set before any core/auth import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import User
from auth.passwords import hash_password
from auth.store import UserStore
from auth.tokens import build_claims, issue_token
from core.config import get_settings
from core.errors import BreachCheckError
from records.store import RecordStore

ADMIN_PASSWORD = "admin-pass-123"
USER_PASSWORD = "user-pass-123"
PWNED_PASSWORD = "password123"

_db_counter = itertools.count()


def memory_url(name: str) -> str:
    """Return a fresh named shared-memory SQLite URL."""
    return f"sqlite:///file:test_{name}_{next(_db_counter)}?mode=memory&cache=shared&uri=true"


class FakeBreachChecker:
    """Answers from a fixed set of known-breached passwords.

    Set fail=True to simulate the service being unreachable.
    """

    def __init__(self, pwned: set[str] | None = None) -> None:
        self.pwned = set(pwned or {PWNED_PASSWORD})
        self.fail = False
        self.checked: list[str] = []

    async def is_password_pwned(self, plaintext: str) -> bool:
        self.checked.append(plaintext)
        if self.fail:
            raise BreachCheckError()
        return plaintext in self.pwned

    async def aclose(self) -> None:
        return None


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def token_for(user: User) -> str:
    settings = get_settings()
    return issue_token(build_claims(user), 60, settings.secret_key).token


@dataclass
class ApiHarness:
    client: TestClient
    user_store: UserStore
    record_store: RecordStore
    breach_checker: FakeBreachChecker
    admin_id: int
    admin_token: str
    user_id: int
    user_token: str

    @property
    def admin_headers(self) -> dict[str, str]:
        return bearer(self.admin_token)

    @property
    def user_headers(self) -> dict[str, str]:
        return bearer(self.user_token)


def _patch_lifespan(user_store: UserStore, record_store: RecordStore, checker: FakeBreachChecker):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores and the fake breach checker into app.state
    so TestClient routes never reach the network.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.record_store = record_store
        app.state.breach_checker = checker
        yield

    return test_lifespan


def _create_user(store: UserStore, username: str, password: str, roles: list[str]) -> User:
    user_id = store.create_user(User(username=username, hashed_password=hash_password(password), roles=roles))
    return store.get_by_id(user_id)


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore(db_url=memory_url("users"))
    yield store
    store.close()


@pytest.fixture
def record_store() -> Generator[RecordStore, None, None]:
    store = RecordStore(db_url=memory_url("records"))
    yield store
    store.close()


@pytest.fixture(scope="module")
def api() -> Generator[ApiHarness, None, None]:
    """Yield an ApiHarness for API integration tests.

    One admin ("testadmin") and one regular user ("alice") exist before the
    client starts. Tests in the same module share the databases.
    """
    user_store = UserStore(db_url=memory_url("api_users"))
    record_store = RecordStore(db_url=memory_url("api_records"))
    checker = FakeBreachChecker()

    admin = _create_user(user_store, "testadmin", ADMIN_PASSWORD, ["admin", "user"])
    alice = _create_user(user_store, "alice", USER_PASSWORD, ["user"])

    app.router.lifespan_context = _patch_lifespan(user_store, record_store, checker)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiHarness(
            client=client,
            user_store=user_store,
            record_store=record_store,
            breach_checker=checker,
            admin_id=admin.id,
            admin_token=token_for(admin),
            user_id=alice.id,
            user_token=token_for(alice),
        )

    user_store.close()
    record_store.close()
