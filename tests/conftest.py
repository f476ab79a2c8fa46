"""
Shared pytest fixtures.
"""
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.core.dependencies import get_membership_client, get_resolver, get_store_dependency
from app.infrastructure.store import MemoryStore
from app.main import app
from app.services.auth.authorization.profiles import ProfileResolver
from app.services.auth.authorization.roles import ROLE_TABLE
from tests.fixtures.records import FakeMembershipClient, service_credentials


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def resolver() -> ProfileResolver:
    return ProfileResolver(ROLE_TABLE, service_credentials())


@pytest.fixture
def membership_client() -> FakeMembershipClient:
    return FakeMembershipClient()


@pytest_asyncio.fixture
async def client(store, resolver, membership_client):
    """HTTP client against the app with in-memory collaborators."""
    app.dependency_overrides[get_store_dependency] = lambda: store
    app.dependency_overrides[get_resolver] = lambda: resolver
    app.dependency_overrides[get_membership_client] = lambda: membership_client

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
