"""Common fixtures for unit and integration tests."""

from typing import Dict, Optional, Set

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from authhub.core.auth.entities import ProviderProfile, User, UserStatus
from authhub.core.auth.exceptions import FederationFailure
from authhub.core.auth.hashing import CredentialHasher
from authhub.core.auth.interfaces import FederationProviderInterface, OAuthStateStoreInterface
from authhub.core.services.auth import models  # noqa: F401
from authhub.infrastructure.database.connection import Base
from authhub.settings import Settings

TEST_SECRET = "test-secret-key-that-is-long-enough-for-hs256"


class FakeFederationProvider(FederationProviderInterface):
    """Identity provider returning canned profiles per authorization code."""

    name = "fake"

    def __init__(self, profiles: Optional[Dict[str, ProviderProfile]] = None) -> None:
        self.profiles = dict(profiles or {})
        self.exchanged = []

    def authorization_url(self, state: str) -> str:
        return f"https://idp.example.com/authorize?state={state}"

    async def exchange_code(self, code: str) -> ProviderProfile:
        self.exchanged.append(code)
        if code not in self.profiles:
            raise FederationFailure("Authorization code is invalid or expired", "invalid_grant")
        return self.profiles[code]


class InMemoryStateStore(OAuthStateStoreInterface):
    """Single-use state values kept in a set."""

    def __init__(self) -> None:
        self.states: Set[str] = set()

    async def save(self, state: str) -> None:
        self.states.add(state)

    async def consume(self, state: str) -> bool:
        if state in self.states:
            self.states.remove(state)
            return True
        return False


@pytest.fixture
def test_settings():
    """Create settings for tests."""
    return Settings(
        jwt_secret_key=TEST_SECRET,
        jwt_algorithm="HS256",
        jwt_issuer="authhub-test",
        jwt_audience="authhub-test-client",
        access_token_expire_minutes=15,
        refresh_token_expire_days=7,
        token_hash_key="test-token-hash-key",
        google_client_id="test-client-id",
        google_client_secret="test-client-secret",
        google_redirect_uri="http://testserver/api/v1/auth/google/callback",
        oauth_state_check_enabled=False,
        admin_emails=["admin@example.com"],
    )


@pytest.fixture
def hasher(test_settings):
    """Create credential hasher."""
    return CredentialHasher(test_settings.token_hash_key)


@pytest.fixture
def alice_profile():
    """Google-style profile of alice."""
    return ProviderProfile(
        external_id="g-42",
        email="alice@example.com",
        display_name="Alice",
        avatar_url="https://example.com/alice.png",
        email_verified=True,
    )


@pytest.fixture
def fake_provider(alice_profile):
    """Create fake identity provider that knows alice's code."""
    return FakeFederationProvider({"alice-code": alice_profile})


@pytest.fixture
def state_store():
    """Create in-memory OAuth state store."""
    return InMemoryStateStore()


@pytest.fixture
def sample_user():
    """Create sample user entity."""
    return User(
        id="user-1",
        email="alice@example.com",
        name="Alice",
        external_id="g-42",
        status=UserStatus.ACTIVE,
        email_verified=True,
    )


@pytest_asyncio.fixture
async def db_engine():
    """Create in-memory SQLite engine with all tables."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    """Create session factory bound to the test engine."""
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_maker):
    """Create database session for tests."""
    async with session_maker() as session:
        yield session
