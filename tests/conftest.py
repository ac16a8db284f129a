"""
tests/conftest.py -- Shared test fixtures for the Musafir auth integration tests.

This module provides:
  - _make_test_stores(): isolated in-memory principal store + revocation ledger
  - _patch_lifespan(): wires test collaborators into app.state, bypassing real startup
  - api_client: module-scoped TestClient over the real app
  - client: the same TestClient with its cookie jar emptied before each test

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares one
in-memory instance across all connections in the same process.

SECRET_KEY must be in the environment before any api/ import: api.main reads
get_settings() at import time and refuses to start without it.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Generator
from contextlib import asynccontextmanager

TEST_SECRET = "test-secret-key-that-is-at-least-32-characters-long"

# CRITICAL: set before any core/api import.
os.environ.setdefault("SECRET_KEY", TEST_SECRET)
os.environ.setdefault("DATABASE_URL", "sqlite:///file:test_musafir_default?mode=memory&cache=shared&uri=true")
# Integration tests log in far more often than the production limit allows.
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.store import PrincipalStore
from auth.tokens import TokenIssuer
from ledger.store import SqlRevocationLedger

TOKEN_WINDOW = 24 * 60 * 60


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[PrincipalStore, SqlRevocationLedger]:
    """Create a principal store and a ledger on one named shared-memory DB.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    db_url = f"sqlite:///file:test_musafir_{db_suffix}?mode=memory&cache=shared&uri=true"
    return PrincipalStore(db_url), SqlRevocationLedger(db_url, ttl=TOKEN_WINDOW)


def _patch_lifespan(store: PrincipalStore, ledger: SqlRevocationLedger, issuer: TokenIssuer):
    """Return an async context manager that replaces the real lifespan.

    The purge_task is a long-sleeping coroutine so shutdown can cancel a real
    asyncio.Task; tests call ledger.purge_expired() directly when they need it.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.principal_store = store
        app.state.revocation_ledger = ledger
        app.state.token_issuer = issuer
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[TestClient, None, None]:
    """Yield a TestClient over the real app with isolated in-memory stores.

    One database per test module; the stores and issuer are reachable from
    tests as client.app.state.principal_store / revocation_ledger / token_issuer.
    """
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    store, ledger = _make_test_stores(suffix)
    issuer = TokenIssuer(TEST_SECRET, TOKEN_WINDOW)

    app.router.lifespan_context = _patch_lifespan(store, ledger, issuer)

    with TestClient(app, raise_server_exceptions=False) as client:
        yield client

    ledger.close()
    store.close()


@pytest.fixture
def client(api_client: TestClient) -> TestClient:
    """api_client with no cookie left over from a previous test's login."""
    api_client.cookies.clear()
    return api_client


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


def rider_body(email: str = "asha@example.com", password: str = "secret123", **overrides) -> dict:
    body = {
        "fullname": {"firstname": "Asha", "lastname": "Verma"},
        "email": email,
        "password": password,
        "confirmPassword": password,
    }
    body.update(overrides)
    return body


def driver_body(email: str = "a@x.com", password: str = "abcdef12", plate: str = "MH02CB4763", **overrides) -> dict:
    body = {
        "fullname": {"firstname": "Ravi", "lastname": "Kumar"},
        "email": email,
        "password": password,
        "vehicle": {"color": "red", "plate": plate, "capacity": 5, "type": "car"},
    }
    body.update(overrides)
    return body
