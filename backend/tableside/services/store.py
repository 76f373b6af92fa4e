"""Shared persistence helpers for services."""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tableside.services.errors import UpstreamError

_logger = logging.getLogger(__name__)


async def commit_changes(
    session: AsyncSession,
    *,
    context: str,
    log: logging.Logger | None = None,
) -> None:
    """Commit the unit of work, rolling back and raising ``UpstreamError`` on failure."""

    try:
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        (log or _logger).error("Store write failed while %s: %s", context, exc)
        raise UpstreamError(
            "Failed to persist changes", upstream_message=str(exc)
        ) from exc
