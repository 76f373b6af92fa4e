"""Integration shortcuts."""

from .push_client import ExpoPushClient, PushClientError, PushMessage
from .stripe_client import (
    PaymentIntent,
    RefundResult,
    StripeClient,
    StripeClientError,
    to_cents,
)

__all__ = [
    "ExpoPushClient",
    "PaymentIntent",
    "PushClientError",
    "PushMessage",
    "RefundResult",
    "StripeClient",
    "StripeClientError",
    "to_cents",
]
