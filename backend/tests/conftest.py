"""Pytest configuration and fixtures for the WMS authorization tests.

The API runs against an in-memory store and a disabled context cache, so
no Postgres or Redis is needed.  `auth_headers(user_id)` mints a bearer
token for any user seeded into the store.
"""

from typing import AsyncGenerator, Callable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from tests.fakes import InMemoryAuthorizationStore, RecordingCache, RecordingReporter
from wms.auth.jwt import create_access_token
from wms.main import app
from wms.rbac.audit import get_audit_reporter
from wms.rbac.cache import get_context_cache
from wms.rbac.store import get_authorization_store


# ── Fixtures ─────────────────────────────────────────────────────

@pytest.fixture
def store() -> InMemoryAuthorizationStore:
    return InMemoryAuthorizationStore()


@pytest.fixture
def reporter() -> RecordingReporter:
    return RecordingReporter()


@pytest.fixture
def context_cache() -> RecordingCache:
    return RecordingCache()


@pytest_asyncio.fixture
async def client(store, reporter, context_cache) -> AsyncGenerator[AsyncClient, None]:
    """Test client with the datastore, cache and audit reporter overridden."""
    app.dependency_overrides[get_authorization_store] = lambda: store
    app.dependency_overrides[get_context_cache] = lambda: context_cache
    app.dependency_overrides[get_audit_reporter] = lambda: reporter

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> Callable[[str], dict]:
    """Factory: bearer headers for a user id."""

    def _headers(user_id: str, session_id: str | None = None) -> dict:
        token = create_access_token(user_id=user_id, session_id=session_id)
        return {"Authorization": f"Bearer {token}"}

    return _headers


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "auth: Authentication and authorization tests")
    config.addinivalue_line("markers", "cache: Context cache tests")
    config.addinivalue_line("markers", "integration: Integration tests")
