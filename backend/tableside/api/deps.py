"""Common API dependencies."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from tableside.core.security import decode_access_token
from tableside.core.settings import get_payment_settings, get_push_settings
from tableside.db.session import get_session
from tableside.integrations import ExpoPushClient, StripeClient
from tableside.models.user import User, UserStatus

bearer_scheme = HTTPBearer(auto_error=False)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide an async database session."""
    async for session in get_session():
        yield session


async def get_current_user(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ],
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> User:
    """Authenticate request via bearer token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise credentials_exception

    try:
        payload = decode_access_token(credentials.credentials)
    except JWTError as exc:
        raise credentials_exception from exc

    subject = payload.get("sub")
    if subject is None:
        raise credentials_exception

    try:
        user_id = uuid.UUID(subject)
    except (ValueError, TypeError) as exc:
        raise credentials_exception from exc

    user = await session.get(User, user_id)
    if user is None or user.status != UserStatus.ACTIVE:
        raise credentials_exception
    return user


async def require_staff(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    if not current_user.is_staff:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions"
        )
    return current_user


async def require_admin(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions"
        )
    return current_user


def ensure_owner_or_staff(user: User, owner_id: uuid.UUID) -> None:
    """Customers may only touch their own records."""
    if user.id != owner_id and not user.is_staff:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions"
        )


@lru_cache
def _stripe_client(secret_key: str, webhook_secret: str | None) -> StripeClient:
    return StripeClient(secret_key, webhook_secret=webhook_secret)


def get_optional_stripe_client() -> StripeClient | None:
    """Stripe client when payments are configured, else ``None``."""
    settings = get_payment_settings()
    if not settings.stripe_secret_key:
        return None
    return _stripe_client(settings.stripe_secret_key, settings.stripe_webhook_secret)


def get_stripe_client() -> StripeClient:
    client = get_optional_stripe_client()
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Payments are not configured",
        )
    return client


def get_payments_currency() -> str:
    return get_payment_settings().currency


def get_push_client() -> ExpoPushClient:
    settings = get_push_settings()
    return ExpoPushClient(
        settings.endpoint,
        access_token=settings.access_token,
        timeout=settings.timeout_seconds,
    )
