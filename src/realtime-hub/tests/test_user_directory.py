"""Tests for the SQL-backed user directory."""

import pytest_asyncio
from app.services.user_directory import SqlUserDirectory
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from shared.database import Base, UserModel
from shared.models import UserRole

# Use SQLite for testing
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False)
    async with factory() as session:
        session.add_all([
            UserModel(id=1, username="admin", email="admin@example.com", role="ADMIN"),
            UserModel(id=7, username="alice", email="alice@example.com", role="USER"),
            UserModel(id=9, username="mallory", email="mallory@example.com", role="USER", is_active=False),
        ])
        await session.commit()

    yield factory

    await engine.dispose()


class TestSqlUserDirectory:
    async def test_get_active_user(self, session_factory):
        directory = SqlUserDirectory(session_factory)

        user = await directory.get_user(1)

        assert user.id == 1
        assert user.username == "admin"
        assert user.role == UserRole.ADMIN
        assert user.is_active is True

    async def test_get_inactive_user(self, session_factory):
        user = await SqlUserDirectory(session_factory).get_user(9)

        assert user.is_active is False

    async def test_unknown_user(self, session_factory):
        assert await SqlUserDirectory(session_factory).get_user(404) is None
