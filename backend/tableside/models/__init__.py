"""ORM models package export."""

from tableside.models.catalog import CatalogItem, CatalogItemKind
from tableside.models.event import Event, TableLocation, VenueTable
from tableside.models.payment import (
    PaymentEvent,
    PaymentKind,
    PaymentRecord,
    PaymentRecordStatus,
    Refund,
)
from tableside.models.reservation import Reservation, ReservationStatus
from tableside.models.user import User, UserRole, UserStatus

__all__ = [
    "CatalogItem",
    "CatalogItemKind",
    "Event",
    "TableLocation",
    "VenueTable",
    "PaymentEvent",
    "PaymentKind",
    "PaymentRecord",
    "PaymentRecordStatus",
    "Refund",
    "Reservation",
    "ReservationStatus",
    "User",
    "UserRole",
    "UserStatus",
]
