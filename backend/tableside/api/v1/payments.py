"""Payments API: booking intents, status checks and reconciliation."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from tableside.api import deps
from tableside.api.rate_limit import PAYMENTS_RATE_DEP
from tableside.integrations import StripeClient
from tableside.models.user import User
from tableside.schemas.payment import (
    PaymentIntentCreateRequest,
    PaymentIntentCreateResponse,
    PaymentStatusRead,
)
from tableside.services import payments_service

router = APIRouter(prefix="/payments", tags=["payments"], dependencies=[PAYMENTS_RATE_DEP])


@router.post("/create-payment-intent", response_model=PaymentIntentCreateResponse)
async def create_payment_intent(
    payload: PaymentIntentCreateRequest,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    stripe_client: Annotated[StripeClient, Depends(deps.get_stripe_client)],
    current_user: Annotated[User, Depends(deps.get_current_user)],
    currency: Annotated[str, Depends(deps.get_payments_currency)],
) -> PaymentIntentCreateResponse:
    if (
        payload.user_id is not None
        and payload.user_id != current_user.id
        and not current_user.is_staff
    ):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions"
        )
    result = await payments_service.create_payment_intent(
        session,
        amount=payload.amount,
        reservation_id=payload.reservation_id,
        event_id=payload.event_id,
        user_id=payload.user_id,
        metadata=payload.metadata,
        stripe=stripe_client,
        currency=currency,
    )
    return PaymentIntentCreateResponse(
        client_secret=result.client_secret, payment_id=result.payment_id
    )


@router.get("/{payment_id}/status", response_model=PaymentStatusRead)
async def get_payment_status(
    payment_id: str,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    current_user: Annotated[User, Depends(deps.get_current_user)],
) -> PaymentStatusRead:
    view = await payments_service.get_payment_status(session, payment_id=payment_id)
    deps.ensure_owner_or_staff(current_user, view.user_id)
    return PaymentStatusRead.model_validate(view, from_attributes=True)


@router.post("/{payment_id}/reconcile", response_model=PaymentStatusRead)
async def reconcile_payment(
    payment_id: str,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    stripe_client: Annotated[StripeClient, Depends(deps.get_stripe_client)],
    current_user: Annotated[User, Depends(deps.get_current_user)],
) -> PaymentStatusRead:
    current = await payments_service.get_payment_status(session, payment_id=payment_id)
    deps.ensure_owner_or_staff(current_user, current.user_id)
    view = await payments_service.reconcile_payment(
        session, payment_intent_id=payment_id, stripe=stripe_client
    )
    return PaymentStatusRead.model_validate(view, from_attributes=True)
