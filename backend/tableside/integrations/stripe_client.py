"""Stripe SDK wrapper returning plain dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, cast

import stripe


@dataclass(slots=True)
class PaymentIntent:
    """Simplified payment intent payload."""

    id: str
    client_secret: str | None
    status: str
    amount: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class RefundResult:
    """Outcome of a refund request."""

    id: str
    status: str
    amount: int | None = None


class StripeClientError(RuntimeError):
    """Raised when Stripe interaction fails."""


def to_cents(amount: Decimal) -> int:
    """Convert a dollar amount to integer minor units."""
    quantized = amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return int((quantized * 100).to_integral_value())


def _intent_from_payload(intent: Any) -> PaymentIntent:
    intent_data = cast(dict[str, Any], intent)
    metadata_dict = cast(dict[str, Any], intent_data.get("metadata") or {})
    amount = intent_data.get("amount")
    return PaymentIntent(
        id=str(intent_data.get("id")),
        client_secret=cast(str | None, intent_data.get("client_secret")),
        status=str(intent_data.get("status", "unknown")),
        amount=int(amount) if amount is not None else None,
        metadata=dict(metadata_dict),
    )


class StripeClient:
    """Thin wrapper around the Stripe SDK."""

    def __init__(
        self,
        secret_key: str,
        *,
        webhook_secret: str | None = None,
        idempotency_prefix: str = "tableside",
        max_network_retries: int = 0,
    ) -> None:
        if not secret_key:
            raise StripeClientError("Stripe secret key is not configured")
        self._secret_key = secret_key
        self._webhook_secret = webhook_secret
        self._idempotency_prefix = idempotency_prefix
        self._max_network_retries = max_network_retries

    @property
    def webhook_secret(self) -> str | None:
        return self._webhook_secret

    def _request_options(self, idempotency_seed: str | None = None) -> dict[str, Any]:
        options: dict[str, Any] = {"api_key": self._secret_key}
        if idempotency_seed:
            options["idempotency_key"] = f"{self._idempotency_prefix}_{idempotency_seed}"
        return options

    def create_payment_intent(
        self,
        *,
        amount: Decimal,
        currency: str = "usd",
        metadata: dict[str, Any] | None = None,
        customer_email: str | None = None,
        idempotency_seed: str | None = None,
    ) -> PaymentIntent:
        """Create an intent for ``amount`` dollars, sent to Stripe in cents."""
        kwargs: dict[str, Any] = {
            "amount": to_cents(amount),
            "currency": currency,
            "metadata": {key: str(value) for key, value in (metadata or {}).items()},
            "automatic_payment_methods": {"enabled": True},
        }
        if customer_email:
            kwargs["receipt_email"] = customer_email
        stripe.max_network_retries = self._max_network_retries
        try:
            intent = stripe.PaymentIntent.create(
                **kwargs, **self._request_options(idempotency_seed)
            )
        except stripe.StripeError as exc:
            raise StripeClientError(
                f"Failed to create payment intent: {exc.user_message or exc}"
            ) from exc
        return _intent_from_payload(intent)

    def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentIntent:
        try:
            intent = stripe.PaymentIntent.retrieve(
                payment_intent_id, **self._request_options()
            )
        except stripe.StripeError as exc:
            raise StripeClientError(
                f"Failed to retrieve payment intent {payment_intent_id}: {exc}"
            ) from exc
        return _intent_from_payload(intent)

    def refund_payment_intent(
        self,
        payment_intent_id: str,
        *,
        amount: Decimal | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> RefundResult:
        kwargs: dict[str, Any] = {
            "payment_intent": payment_intent_id,
            "reason": "requested_by_customer",
        }
        if amount is not None:
            kwargs["amount"] = to_cents(amount)
        if metadata:
            kwargs["metadata"] = {key: str(value) for key, value in metadata.items()}
        try:
            refund = stripe.Refund.create(**kwargs, **self._request_options())
        except stripe.StripeError as exc:
            raise StripeClientError(
                f"Failed to refund payment intent {payment_intent_id}: {exc}"
            ) from exc
        refund_data = cast(dict[str, Any], refund)
        raw_amount = refund_data.get("amount")
        return RefundResult(
            id=str(refund_data.get("id")),
            status=str(refund_data.get("status", "unknown")),
            amount=int(raw_amount) if raw_amount is not None else None,
        )

    def construct_event(self, payload: bytes, signature: str) -> Any:
        if not self._webhook_secret:
            raise StripeClientError("Webhook secret is not configured")
        try:
            event = stripe.Webhook.construct_event(
                payload=payload,
                sig_header=signature,
                secret=self._webhook_secret,
            )
        except (ValueError, stripe.SignatureVerificationError) as exc:
            raise StripeClientError("Invalid webhook signature") from exc
        return event
