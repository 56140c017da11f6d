"""
Shared pytest fixtures – in-memory SQLite for unit tests (no real Postgres needed).
"""
from __future__ import annotations

import os
from typing import AsyncGenerator

# Configure test env before app import
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("IDENTITY_PROVIDER_URL", "http://identity.test")

import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from store_api.database import get_db  # noqa: E402
from store_api.errors import Unauthorized  # noqa: E402
from store_api.main import app  # noqa: E402
from store_api.models import Base  # noqa: E402

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

SELLER = "seller-1"
OTHER_SELLER = "seller-2"


class FakeIdentityProvider:
    """Accepts ``token-<user id>`` for the user ids it was given."""

    def __init__(self, *user_ids: str) -> None:
        self.tokens = {f"token-{u}": u for u in user_ids}
        self.calls = 0

    async def resolve(self, token: str) -> str:
        self.calls += 1
        try:
            return self.tokens[token]
        except KeyError:
            raise Unauthorized() from None


def auth(user_id: str = SELLER) -> dict[str, str]:
    return {"Authorization": f"Bearer token-{user_id}"}


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    engine = create_async_engine(TEST_DB_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with factory() as session:
        yield session
        await session.rollback()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_db():
    """Fresh schema per test, wired into the app; yields the session factory."""
    engine = create_async_engine(TEST_DB_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )

    async def override_get_db():
        async with factory() as session:
            yield session

    original_provider = app.state.identity_provider
    app.state.identity_provider = FakeIdentityProvider(SELLER, OTHER_SELLER)
    app.dependency_overrides[get_db] = override_get_db
    yield factory
    app.dependency_overrides.clear()
    app.state.identity_provider = original_provider

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(test_db) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as c:
        yield c


async def seed(factory, *rows) -> None:
    """Insert ORM rows directly, bypassing the API."""
    async with factory() as session:
        session.add_all(rows)
        await session.commit()
