"""User lookups and role management."""
from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tableside.models import User, UserRole
from tableside.services.errors import NotFoundError
from tableside.services.store import commit_changes

logger = logging.getLogger(__name__)


async def list_users(
    session: AsyncSession, *, role: UserRole | None = None
) -> list[User]:
    stmt = select(User)
    if role is not None:
        stmt = stmt.where(User.role == role)
    stmt = stmt.order_by(User.email.asc())
    return list((await session.execute(stmt)).scalars().all())


async def get_user(session: AsyncSession, *, user_id: uuid.UUID) -> User:
    user = await session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def set_role(
    session: AsyncSession, *, user_id: uuid.UUID, role: UserRole
) -> User:
    user = await get_user(session, user_id=user_id)
    user.role = role
    await commit_changes(session, context="updating user role")
    await session.refresh(user)
    logger.info("User %s role set to %s", user.id, role.value)
    return user
