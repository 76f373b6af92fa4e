"""Push token registration and broadcast endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from tableside.api import deps
from tableside.api.rate_limit import DEFAULT_RATE_DEP
from tableside.integrations import ExpoPushClient
from tableside.models.user import User
from tableside.schemas.notification import (
    PushSendRequest,
    PushSendResponse,
    PushTokenRequest,
)
from tableside.services import notification_service

router = APIRouter(prefix="/notifications", dependencies=[DEFAULT_RATE_DEP])


@router.post(
    "/push-token",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Register this device for push notifications",
)
async def save_push_token(
    payload: PushTokenRequest,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    current_user: Annotated[User, Depends(deps.get_current_user)],
) -> None:
    await notification_service.save_push_token(
        session, user=current_user, token=payload.token
    )
    return None


@router.post(
    "/send",
    response_model=PushSendResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Send a push notification",
)
async def send_push(
    payload: PushSendRequest,
    background_tasks: BackgroundTasks,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    _: Annotated[User, Depends(deps.require_admin)],
    push_client: Annotated[ExpoPushClient, Depends(deps.get_push_client)],
) -> PushSendResponse:
    tokens = await notification_service.resolve_push_tokens(
        session, user_ids=payload.user_ids
    )
    queued = notification_service.schedule_push(
        background_tasks,
        push_client,
        tokens=tokens,
        title=payload.title,
        message=payload.message,
        data=payload.data,
    )
    return PushSendResponse(queued=queued)
