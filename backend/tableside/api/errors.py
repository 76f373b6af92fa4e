"""Map service-layer errors to HTTP responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from tableside.services.errors import (
    NotFoundError,
    PaymentIncompleteError,
    ServiceError,
    TableUnavailableError,
    UpstreamError,
    ValidationError,
)

logger = logging.getLogger(__name__)

UPSTREAM_DETAIL = "A downstream service failed; please try again later"


def status_for(exc: ServiceError) -> int:
    if isinstance(exc, TableUnavailableError):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, ValidationError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, PaymentIncompleteError):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, UpstreamError):
        return status.HTTP_502_BAD_GATEWAY
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def service_error_handler(request: Request, exc: Exception) -> JSONResponse:
    if not isinstance(exc, ServiceError):
        raise exc
    code = status_for(exc)
    body: dict[str, str] = {"detail": exc.message}
    if isinstance(exc, PaymentIncompleteError):
        body["status"] = exc.status
    elif code >= 500:
        logger.error(
            "%s %s failed: %s (%s)",
            request.method,
            request.url.path,
            exc.message,
            getattr(exc, "upstream_message", None),
        )
        body["detail"] = UPSTREAM_DETAIL
    return JSONResponse(status_code=code, content=body)


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, service_error_handler)
