"""Push notification helpers."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Sequence
from decimal import Decimal
from typing import Any

from fastapi import BackgroundTasks
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tableside.integrations import ExpoPushClient, PushClientError, PushMessage
from tableside.models import Reservation, User, UserStatus
from tableside.services.errors import ValidationError
from tableside.services.store import commit_changes

logger = logging.getLogger(__name__)

_TOKEN_PREFIXES = ("ExponentPushToken[", "ExpoPushToken[")


def is_push_token(token: str) -> bool:
    return token.startswith(_TOKEN_PREFIXES) and token.endswith("]")


async def save_push_token(session: AsyncSession, *, user: User, token: str) -> User:
    token = token.strip()
    if not is_push_token(token):
        raise ValidationError("Invalid push token")
    user.push_token = token
    await commit_changes(session, context="saving push token")
    await session.refresh(user)
    return user


async def resolve_push_tokens(
    session: AsyncSession, *, user_ids: Sequence[uuid.UUID] | None = None
) -> list[str]:
    """Device tokens for ``user_ids``, or for every active user when ``None``."""

    stmt = select(User.push_token).where(
        User.push_token.is_not(None), User.status == UserStatus.ACTIVE
    )
    if user_ids is not None:
        if not user_ids:
            return []
        stmt = stmt.where(User.id.in_(set(user_ids)))
    result = await session.execute(stmt)
    return sorted({token for token in result.scalars().all() if token})


async def _deliver(client: ExpoPushClient, messages: list[PushMessage]) -> None:
    try:
        tickets = await client.send(messages)
    except PushClientError:
        logger.exception("Push delivery failed for %d device(s)", len(messages))
        return
    errors = [ticket for ticket in tickets if ticket.get("status") == "error"]
    if errors:
        logger.warning("Push gateway rejected %d message(s): %s", len(errors), errors)
    else:
        logger.info("Push delivered to %d device(s)", len(messages))


def schedule_push(
    background_tasks: BackgroundTasks,
    client: ExpoPushClient,
    *,
    tokens: Iterable[str | None],
    title: str,
    message: str,
    data: dict[str, Any] | None = None,
) -> int:
    """Queue a push to each token; returns how many were queued."""
    messages = [
        PushMessage(to=token, title=title, body=message, data=dict(data or {}))
        for token in tokens
        if token
    ]
    if not messages:
        logger.debug("No push tokens provided; skipping")
        return 0
    background_tasks.add_task(_deliver, client, messages)
    return len(messages)


def build_table_change_message(
    reservation: Reservation, *, status: str, amount: Decimal
) -> tuple[str, str]:
    table = reservation.table_number
    if status == "needs_payment":
        return (
            "Table change payment required",
            f"Your move to table {table} needs an additional ${amount:.2f}.",
        )
    if status == "refunded":
        return (
            "Table change refund issued",
            f"You moved to table {table}; ${-amount:.2f} is being refunded.",
        )
    return ("Table updated", f"Your reservation is now at table {table}.")
