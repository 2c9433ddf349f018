"""
Fixtures for API tests.

``client`` runs the app with its service dependencies overridden to use the
in-memory store, in-memory challenge broker and fake-clock token codec from
the root conftest, so no database or Redis is needed.

``db_client`` runs the app against a real SQLite database through aiosqlite:
the request session comes from ``get_db`` and challenges live in the
``challenges`` table. Only the outbound collaborators are mocked.
"""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from clubauth.config import clear_settings_cache
from clubauth.core import database
from clubauth.core.auth import (
    Challenges,
    Store,
    get_auth_service,
    get_challenge_broker,
    get_credential_store,
    get_passkey_service,
)
from clubauth.core.security import get_token_codec
from clubauth.main import app
from clubauth.models.orm import Base
from clubauth.services.auth_service import AuthService


@pytest_asyncio.fixture
async def client(store, broker, codec, auth_service, passkey_service):
    """Create an async HTTP client for testing."""
    app.dependency_overrides[get_credential_store] = lambda: store
    app.dependency_overrides[get_challenge_broker] = lambda: broker
    app.dependency_overrides[get_token_codec] = lambda: codec
    app.dependency_overrides[get_auth_service] = lambda: auth_service
    app.dependency_overrides[get_passkey_service] = lambda: passkey_service
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


# ==================== DATABASE FIXTURES ====================


@pytest_asyncio.fixture
async def async_engine(tmp_path):
    """SQLite engine on a per-test database file with the schema created.

    Uses NullPool so every session gets its own connection, like separate
    requests against a real server.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'clubauth.db'}",
        echo=False,
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def async_session_factory(async_engine):
    """Create async session factory."""
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(async_session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for arranging and inspecting rows outside of requests."""
    async with async_session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def db_client(
    monkeypatch,
    async_session_factory,
    settings,
    codec,
    mock_email,
    mock_photos,
    mock_etlab,
    mock_google,
):
    """HTTP client for the app backed by the SQLite database."""
    monkeypatch.setattr(database, "_async_session_factory", async_session_factory)
    monkeypatch.setenv("CLUBAUTH_CHALLENGE_STORE", "database")
    clear_settings_cache()

    async def auth_service_override(store: Store, challenges: Challenges) -> AuthService:
        return AuthService(
            store,
            challenges,
            settings=settings,
            codec=codec,
            email=mock_email,
            photos=mock_photos,
            etlab=mock_etlab,
            google=mock_google,
        )

    app.dependency_overrides[get_token_codec] = lambda: codec
    app.dependency_overrides[get_auth_service] = auth_service_override
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()
        clear_settings_cache()
