"""Common fixtures for integration tests."""

from contextlib import asynccontextmanager

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from authhub.api.dependencies import get_database_session, get_federation_provider
from authhub.core.auth.entities import ProviderProfile
from authhub.infrastructure.database.connection import Base
from authhub.infrastructure.database.session import session_scope
from authhub.main import create_app
from authhub.settings import get_settings


@pytest.fixture
def admin_profile():
    """Profile of the configured administrator."""
    return ProviderProfile(
        external_id="g-1",
        email="admin@example.com",
        display_name="Admin",
        email_verified=True,
    )


@pytest.fixture
def api_app(tmp_path, test_settings, fake_provider, admin_profile):
    """
    Create the application on a file-based SQLite database.

    Tables are created inside the test client's event loop; NullPool keeps
    connections from leaking across loops.
    """
    fake_provider.profiles["admin-code"] = admin_profile
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'authhub.sqlite'}", poolclass=NullPool)
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    @asynccontextmanager
    async def lifespan(app):
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        yield
        await engine.dispose()

    app = create_app(test_settings, lifespan_handler=lifespan)

    async def _override_get_db():
        async with session_scope(session_maker) as session:
            yield session

    app.dependency_overrides[get_database_session] = _override_get_db
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_federation_provider] = lambda: fake_provider
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(api_app):
    """Create test client running the application lifespan."""
    with TestClient(api_app) as test_client:
        yield test_client


@pytest.fixture
def login(client):
    """Return a helper completing a federated login and returning the response body."""

    def _login(code="alice-code", ip_address="198.51.100.7"):
        response = client.get(
            "/api/v1/auth/google/callback",
            params={"code": code},
            headers={"X-Forwarded-For": ip_address},
        )
        assert response.status_code == 200, response.text
        return response.json()

    return _login


@pytest.fixture
def alice(login):
    """Log alice in and return the login response body."""
    return login()


@pytest.fixture
def admin(login):
    """Log the administrator in and return the login response body."""
    return login(code="admin-code", ip_address="198.51.100.1")
