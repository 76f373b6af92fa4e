"""Service layer exports."""
from tableside.services import (
    catalog_service,
    event_service,
    notification_service,
    payments_service,
    pricing_service,
    reservation_service,
    table_change_service,
    user_service,
)

__all__ = [
    "catalog_service",
    "event_service",
    "notification_service",
    "payments_service",
    "pricing_service",
    "reservation_service",
    "table_change_service",
    "user_service",
]
