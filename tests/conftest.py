"""
tests/conftest.py -- Shared test fixtures for Tradepost tests.

This module provides:
  - _make_test_engine(): isolated named shared-memory SQLite engine
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_app / client: TestClient against the real app with isolated stores
  - account_store / directory / ledger / session_store / product_store /
    catalog: unit fixtures over a private sqlite:///:memory: engine

HTTP helpers (register, login, auth headers) live in tests/helpers.py.

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the TestClient fixtures because route handlers run in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread. Unit fixtures never leave the test thread, so :memory: is fine.

The DEBUG env var must be set before any auth/core import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
ALLOWED_HOSTS is set there too because api.main reads it at import time.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set DEBUG before any auth/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")
# TestClient sends Host: testserver, which the default allowed_hosts refuses.
os.environ.setdefault("ALLOWED_HOSTS", '["localhost", "127.0.0.1", "testserver"]')

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app, wire_services
from auth.directory import AccountDirectory
from auth.reset import PasswordResetLedger
from auth.session_store import SessionStore
from auth.store import AccountStore
from catalog.service import ProductCatalog
from catalog.store import ProductStore
from core.database import create_db_engine

# Limiter counters are process-global; leaving them on would make the
# suite order-dependent.
limiter.enabled = False


# ---------------------------------------------------------------------------
# Engine helpers
# ---------------------------------------------------------------------------


def _make_test_engine(db_suffix: str):
    """Create an isolated named shared-memory SQLite engine.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    return create_db_engine(f"sqlite:///file:test_tradepost_{db_suffix}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(engine):
    """Return an async context manager that replaces the real lifespan.

    The purge_task is a long-sleeping coroutine so shutdown can cancel a real
    asyncio.Task.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        wire_services(app, engine)
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


# ---------------------------------------------------------------------------
# Module-scoped app fixture -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_app(request) -> Generator[TestClient, None, None]:
    """Yield a TestClient bound to the real app with isolated in-memory stores."""
    engine = _make_test_engine(request.module.__name__.rsplit(".", 1)[-1])
    app.router.lifespan_context = _patch_lifespan(engine)

    with TestClient(app, raise_server_exceptions=True) as test_client:
        yield test_client

    engine.dispose()


@pytest.fixture
def client(api_app: TestClient) -> TestClient:
    """The module client with an empty cookie jar, so no test inherits a session."""
    api_app.cookies.clear()
    return api_app


# ---------------------------------------------------------------------------
# Unit fixtures -- private in-memory engine per test
# ---------------------------------------------------------------------------


@pytest.fixture
def engine():
    eng = create_db_engine("sqlite:///:memory:")
    yield eng
    eng.dispose()


@pytest.fixture
def account_store(engine) -> AccountStore:
    return AccountStore(engine)


@pytest.fixture
def directory(account_store) -> AccountDirectory:
    return AccountDirectory(account_store)


@pytest.fixture
def ledger(account_store) -> PasswordResetLedger:
    return PasswordResetLedger(account_store, expire_minutes=15)


@pytest.fixture
def session_store(engine) -> SessionStore:
    return SessionStore(engine, ttl=60)


@pytest.fixture
def product_store(engine) -> ProductStore:
    return ProductStore(engine)


@pytest.fixture
def catalog(product_store) -> ProductCatalog:
    return ProductCatalog(product_store)
