"""
Shared test fixtures and configuration for CompAdvisor backend tests.
"""
import os
from typing import AsyncGenerator
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment before importing app modules
os.environ["ENVIRONMENT"] = "development"
os.environ["DEBUG"] = "true"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["PERSIST_SUGGESTIONS"] = "true"

from compadvisor.db.base import Base  # noqa: E402
from compadvisor.models.employee import Employee  # noqa: E402
from tests.utils.factories import SEED_EMPLOYEES, seed_profiles  # noqa: E402

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def seed_workforce():
    """The seed workforce as in-memory profiles."""
    return seed_profiles()


@pytest_asyncio.fixture
async def db_engine():
    """In-memory SQLite engine shared by every session in one test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session over an empty schema."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def seeded_session(db_session) -> AsyncSession:
    """Session over the seed workforce, all active at revision 1."""
    for row in SEED_EMPLOYEES:
        db_session.add(Employee(status="active", suggestion=None, last_analyzed=None, **row))
    await db_session.commit()
    return db_session


@pytest_asyncio.fixture
async def client(session_factory, seeded_session) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app with get_db bound to the test database."""
    from compadvisor.api.deps import get_db
    from compadvisor.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def mock_request():
    """Minimal request stand-in for calling exception handlers directly."""
    request = MagicMock()
    request.url.path = "/api/test"
    request.method = "POST"
    request.headers = {}
    return request
