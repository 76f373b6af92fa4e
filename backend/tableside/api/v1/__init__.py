"""Versioned API router."""

from fastapi import APIRouter

from . import (
    catalog,
    events,
    health,
    notifications,
    payments,
    payments_webhook,
    reservations,
    users,
)

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(events.router, tags=["events"])
router.include_router(events.tables_router, tags=["events"])
router.include_router(catalog.router, tags=["catalog"])
router.include_router(reservations.router, tags=["reservations"])
router.include_router(payments_webhook.router)
router.include_router(payments.router)
router.include_router(users.router, prefix="/users", tags=["users"])
router.include_router(notifications.router, tags=["notifications"])

__all__ = ["router"]
