"""
tests/conftest.py -- Shared test fixtures for Foundex auth tests.

This module provides:
  - FakeClock / clock: a settable UTC clock for expiry boundaries
  - FakeMailer / mailer: captures outbound email instead of sending it
  - store: an isolated in-memory UserStore per test
  - _patch_lifespan(): wires test collaborators into app.state, bypassing real startup
  - api_client: module-scoped (client, store, mailer) against the full ASGI app
  - client: the api_client's TestClient with its cookie jar emptied per test

Design: Named shared-memory SQLite URIs (not plain :memory:) are used for the
app-level store because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread.

DEBUG must be set before any auth/core import so get_settings() auto-generates
SECRET_KEY in dev mode rather than raising ValueError. BCRYPT_ROUNDS is
lowered to bcrypt's minimum to keep the suite fast; ALLOWED_HOSTS admits
TestClient's "testserver" host.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: Set env before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("ALLOWED_HOSTS", "testserver,localhost")

import pytest
from fastapi.testclient import TestClient

from asgi import app
from auth.policy import AdminPolicy
from auth.reset import ResetCodeFlow
from auth.session import SessionResolver
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import get_settings
from core.mailer import DeliveryResult

ADMIN_EMAIL = "admin@x.com"


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class FakeMailer:
    """Records every send() call. Set fail=True to simulate a delivery failure."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []
        self.fail = False

    def send(self, to: str, subject: str, body: str) -> DeliveryResult:
        self.sent.append((to, subject, body))
        if self.fail:
            return DeliveryResult(success=False, error="simulated failure")
        return DeliveryResult(success=True, mock=True)

    def close(self) -> None:
        pass


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def tokens(clock: FakeClock) -> TokenService:
    return TokenService(get_settings().secret_key, 7 * 24 * 60 * 60, clock=clock)


# ---------------------------------------------------------------------------
# App-level fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore, mailer: FakeMailer):
    """Return an async context manager that replaces the real lifespan.

    Wires the test store, a capturing mailer and a fixed admin allowlist into
    app.state so routes run against isolated state and never send real email.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        settings = get_settings()
        app.state.user_store = user_store
        app.state.mailer = mailer
        app.state.tokens = TokenService(settings.secret_key, settings.token_expire_seconds)
        app.state.policy = AdminPolicy([ADMIN_EMAIL])
        app.state.resolver = SessionResolver(app.state.tokens, user_store, app.state.policy)
        app.state.reset_flow = ResetCodeFlow(user_store, mailer, ttl_seconds=900, code_length=8)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, UserStore, FakeMailer], None, None]:
    """Yield (client, store, mailer) for integration tests.

    The TestClient uses the real ASGI app (API + web pages + edge guard) with
    a patched lifespan. Each test module gets its own named in-memory DB.
    """
    db_name = request.module.__name__.rsplit(".", 1)[-1]
    user_store = UserStore(db_url=f"sqlite:///file:{db_name}?mode=memory&cache=shared&uri=true")
    fake_mailer = FakeMailer()

    app.router.lifespan_context = _patch_lifespan(user_store, fake_mailer)

    with TestClient(app, raise_server_exceptions=True) as c:
        yield c, user_store, fake_mailer

    user_store.close()


@pytest.fixture
def client(api_client: tuple[TestClient, UserStore, FakeMailer]) -> TestClient:
    """The shared TestClient with no cookies carried over from earlier tests."""
    c, _store, _mailer = api_client
    c.cookies.clear()
    return c
