"""
Pytest configuration and fixtures.
"""
from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import date
from decimal import Decimal
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from contactmanager.config import Settings
from contactmanager.contacts.models import Contact
from contactmanager.main import app
from contactmanager.shared.database import Base, get_db_session


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings."""
    return Settings(
        app_env="dev",
        debug=False,
        database_url="sqlite+aiosqlite:///:memory:",
        create_schema_on_startup=False,
        repository_batch_size=100,
        minimum_contact_age=0,
    )


@pytest_asyncio.fixture
async def db_engine(test_settings: Settings) -> AsyncGenerator[Any, None]:
    """Create test database engine."""
    # one shared connection so the in-memory database outlives each checkout
    engine = create_async_engine(
        test_settings.database_url,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: Any) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session


def make_contact(
    phone: str = "+15551234567",
    name: str = "John Doe",
    date_of_birth: date = date(1990, 1, 1),
    married: bool = False,
    salary: Decimal | int | str = Decimal("50000"),
) -> Contact:
    """Build a transient contact with sensible defaults."""
    return Contact(
        phone=phone,
        name=name,
        date_of_birth=date_of_birth,
        married=married,
        salary=Decimal(str(salary)),
    )


@pytest_asyncio.fixture
async def async_client(
    db_session: AsyncSession,
) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API tests."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db_session] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
