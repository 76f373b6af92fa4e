"""User profile and administration endpoints."""

from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tableside.api import deps
from tableside.api.rate_limit import DEFAULT_RATE_DEP
from tableside.models.user import User, UserRole
from tableside.schemas.reservation import ReservationRead
from tableside.schemas.user import UserRead, UserRoleUpdate
from tableside.services import reservation_service, user_service

router = APIRouter(dependencies=[DEFAULT_RATE_DEP])


@router.get("/me", response_model=UserRead, summary="Current user profile")
async def read_current_user(
    current_user: Annotated[User, Depends(deps.get_current_user)],
) -> UserRead:
    return UserRead.model_validate(current_user)


@router.get("", response_model=list[UserRead], summary="List users")
async def list_users(
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    _: Annotated[User, Depends(deps.require_admin)],
    role: UserRole | None = Query(default=None),
) -> list[UserRead]:
    users = await user_service.list_users(session, role=role)
    return [UserRead.model_validate(user) for user in users]


@router.patch("/{user_id}/role", response_model=UserRead, summary="Change user role")
async def update_user_role(
    user_id: uuid.UUID,
    payload: UserRoleUpdate,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    _: Annotated[User, Depends(deps.require_admin)],
) -> UserRead:
    user = await user_service.set_role(session, user_id=user_id, role=payload.role)
    return UserRead.model_validate(user)


@router.get(
    "/{user_id}/reservations",
    response_model=list[ReservationRead],
    summary="Reservations belonging to a user",
)
async def list_user_reservations(
    user_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    current_user: Annotated[User, Depends(deps.get_current_user)],
) -> list[ReservationRead]:
    deps.ensure_owner_or_staff(current_user, user_id)
    reservations = await reservation_service.list_user_reservations(
        session, user_id=user_id
    )
    return [ReservationRead.model_validate(r) for r in reservations]
