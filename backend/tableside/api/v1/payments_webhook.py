"""Stripe webhook receiver for payment events."""

from __future__ import annotations

import json
from typing import Annotated, Any, cast

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from tableside.api import deps
from tableside.core.settings import get_payment_settings
from tableside.integrations import StripeClient, StripeClientError
from tableside.schemas.payment import WebhookAck
from tableside.services import payments_service

router = APIRouter(prefix="/payments", tags=["payments-webhook"])


@router.post("/webhook", status_code=status.HTTP_200_OK, response_model=WebhookAck)
async def handle_webhook(
    request: Request,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    stripe_client: Annotated[
        StripeClient | None, Depends(deps.get_optional_stripe_client)
    ],
) -> WebhookAck:
    settings = get_payment_settings()
    payload_bytes = await request.body()
    payload: dict[str, Any]

    if settings.payments_webhook_verify:
        signature = request.headers.get("Stripe-Signature")
        if not signature:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Missing signature header",
            )
        if stripe_client is None:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Payments are not configured",
            )
        try:
            event = stripe_client.construct_event(payload_bytes, signature)
        except StripeClientError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
            ) from exc
        if hasattr(event, "to_dict_recursive"):
            payload = cast(dict[str, Any], event.to_dict_recursive())
        elif hasattr(event, "to_dict"):
            payload = cast(dict[str, Any], event.to_dict())
        else:
            payload = cast(dict[str, Any], event)
    else:
        try:
            payload = json.loads(payload_bytes)
        except json.JSONDecodeError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid payload"
            ) from exc
        if not isinstance(payload, dict):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid payload"
            )

    outcome = await payments_service.apply_webhook_event(session, payload=payload)
    return WebhookAck(status=outcome)
