"""Error taxonomy shared by the service layer."""

from __future__ import annotations


class ServiceError(Exception):
    """Base class for failures raised by services."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError, ValueError):
    """Caller input or a cross-field consistency check failed."""


class TableUnavailableError(ValidationError):
    """The requested table is held by another reservation."""


class NotFoundError(ServiceError, LookupError):
    """A referenced reservation, payment or pending change does not exist."""


class PaymentIncompleteError(ServiceError):
    """The processor reports the payment has not succeeded."""

    def __init__(self, message: str, *, status: str) -> None:
        super().__init__(message)
        self.status = status


class UpstreamError(ServiceError):
    """The document store or payment processor call itself failed."""

    def __init__(self, message: str, *, upstream_message: str | None = None) -> None:
        super().__init__(message)
        self.upstream_message = upstream_message


__all__ = [
    "NotFoundError",
    "PaymentIncompleteError",
    "ServiceError",
    "TableUnavailableError",
    "UpstreamError",
    "ValidationError",
]
