"""Schema exports."""

from tableside.schemas.catalog import (
    CatalogItemCreate,
    CatalogItemRead,
    CatalogItemUpdate,
)
from tableside.schemas.event import (
    EventCreate,
    EventDetail,
    EventRead,
    EventUpdate,
    TableCreate,
    TableRead,
    TableUpdate,
)
from tableside.schemas.notification import (
    PushSendRequest,
    PushSendResponse,
    PushTokenRequest,
)
from tableside.schemas.payment import (
    CompleteTableChangePaymentRequest,
    PaymentIntentCreateRequest,
    PaymentIntentCreateResponse,
    PaymentStatusRead,
    PendingTableChangePaymentRead,
    WebhookAck,
)
from tableside.schemas.pricing import (
    CostBreakdownRead,
    LegacyEstimateRead,
    TableQuote,
)
from tableside.schemas.reservation import (
    CancelRequest,
    CheckInDetails,
    CheckInRequest,
    EventReservations,
    LineItem,
    ReservationCreate,
    ReservationRead,
    ReservationUpdate,
    TableChangeRequest,
    TableChangeResult,
)
from tableside.schemas.user import UserRead, UserRoleUpdate

__all__ = [
    "CancelRequest",
    "CatalogItemCreate",
    "CatalogItemRead",
    "CatalogItemUpdate",
    "CheckInDetails",
    "CheckInRequest",
    "CompleteTableChangePaymentRequest",
    "CostBreakdownRead",
    "EventCreate",
    "EventDetail",
    "EventRead",
    "EventReservations",
    "EventUpdate",
    "LegacyEstimateRead",
    "LineItem",
    "PaymentIntentCreateRequest",
    "PaymentIntentCreateResponse",
    "PaymentStatusRead",
    "PendingTableChangePaymentRead",
    "PushSendRequest",
    "PushSendResponse",
    "PushTokenRequest",
    "ReservationCreate",
    "ReservationRead",
    "ReservationUpdate",
    "TableChangeRequest",
    "TableChangeResult",
    "TableCreate",
    "TableQuote",
    "TableRead",
    "TableUpdate",
    "UserRead",
    "UserRoleUpdate",
    "WebhookAck",
]
