"""User lookup used to confirm a token's account is still active."""

from __future__ import annotations

from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shared.database import UserModel
from shared.models import CoolmonBaseModel, UserRole


class UserRecord(CoolmonBaseModel):
    """The account fields the hub needs to admit a connection."""

    id: int
    username: str
    role: UserRole
    is_active: bool


class UserDirectory(Protocol):
    """Resolves a user id to its current account state."""

    async def get_user(self, user_id: int) -> UserRecord | None: ...


class SqlUserDirectory:
    """Reads accounts from the REST backend's ``users`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_user(self, user_id: int) -> UserRecord | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(UserModel).where(UserModel.id == user_id)
            )
            user = result.scalar_one_or_none()

        if user is None:
            return None
        return UserRecord.model_validate(user)
