"""Test fixtures for the Tableside backend."""
from __future__ import annotations

import itertools
import os
from collections.abc import AsyncIterator, Callable
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("PAYMENTS_WEBHOOK_VERIFY", "false")
os.environ.pop("REDIS_URL", None)
os.environ.pop("STRIPE_SECRET_KEY", None)

from tableside.api import deps
from tableside.core.config import get_settings
from tableside.core.security import create_access_token
from tableside.db.base import Base
from tableside.db.session import dispose_engine, get_sessionmaker
from tableside.integrations import (
    ExpoPushClient,
    PaymentIntent,
    RefundResult,
    StripeClientError,
    to_cents,
)
from tableside.main import app
from tableside.models import (
    CatalogItem,
    CatalogItemKind,
    Event,
    TableLocation,
    User,
    UserRole,
    UserStatus,
    VenueTable,
)
from tableside.services import payments_service, reservation_service


class FakeStripeClient:
    """In-memory stand-in for ``StripeClient``.

    Intents start in ``requires_payment_method``; tests flip them with
    ``succeed`` or ``set_status``. ``on_retrieve`` runs before every lookup.
    """

    webhook_secret: str | None = None

    def __init__(self) -> None:
        self.intents: dict[str, PaymentIntent] = {}
        self.refunds: list[tuple[str, RefundResult]] = []
        self.fail_create = False
        self.fail_refunds = False
        self.on_retrieve: Callable[[str], None] | None = None
        self._ids = itertools.count(1)

    def create_payment_intent(
        self,
        *,
        amount: Decimal,
        currency: str = "usd",
        metadata: dict[str, Any] | None = None,
        customer_email: str | None = None,
        idempotency_seed: str | None = None,
    ) -> PaymentIntent:
        if self.fail_create:
            raise StripeClientError("Failed to create payment intent: card network down")
        intent_id = f"pi_test{next(self._ids)}"
        intent = PaymentIntent(
            id=intent_id,
            client_secret=f"{intent_id}_secret_fake",
            status="requires_payment_method",
            amount=to_cents(amount),
            metadata={key: str(value) for key, value in (metadata or {}).items()},
        )
        self.intents[intent_id] = intent
        return replace(intent, metadata=dict(intent.metadata))

    def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentIntent:
        if self.on_retrieve is not None:
            self.on_retrieve(payment_intent_id)
        intent = self.intents.get(payment_intent_id)
        if intent is None:
            raise StripeClientError(
                f"Failed to retrieve payment intent {payment_intent_id}: No such intent"
            )
        return replace(intent, metadata=dict(intent.metadata))

    def refund_payment_intent(
        self,
        payment_intent_id: str,
        *,
        amount: Decimal | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> RefundResult:
        if self.fail_refunds:
            raise StripeClientError(
                f"Failed to refund payment intent {payment_intent_id}: charge disputed"
            )
        refund = RefundResult(
            id=f"re_test{next(self._ids)}",
            status="succeeded",
            amount=to_cents(amount) if amount is not None else None,
        )
        self.refunds.append((payment_intent_id, refund))
        return refund

    def construct_event(self, payload: bytes, signature: str) -> Any:
        raise StripeClientError("Invalid webhook signature")

    def succeed(self, payment_intent_id: str) -> None:
        self.set_status(payment_intent_id, "succeeded")

    def set_status(self, payment_intent_id: str, status: str) -> None:
        self.intents[payment_intent_id].status = status

    def add_intent(
        self, intent_id: str, *, amount: Decimal, status: str, metadata: dict[str, str]
    ) -> PaymentIntent:
        intent = PaymentIntent(
            id=intent_id,
            client_secret=f"{intent_id}_secret_fake",
            status=status,
            amount=to_cents(amount),
            metadata=dict(metadata),
        )
        self.intents[intent_id] = intent
        return intent


@pytest.fixture(scope="session")
def db_url(tmp_path_factory: pytest.TempPathFactory) -> str:
    """Provide a temporary SQLite database URL for the test session."""
    db_path = tmp_path_factory.mktemp("db") / "test.db"
    return f"sqlite+aiosqlite:///{db_path}"


@pytest.fixture()
def db_path(db_url: str) -> str:
    return db_url.split(":///", 1)[1]


@pytest_asyncio.fixture()
async def reset_database(db_url: str) -> AsyncIterator[None]:
    """Drop and recreate the database schema for an isolated test."""
    os.environ["DATABASE_URL"] = db_url
    get_settings.cache_clear()
    get_settings()

    await dispose_engine(db_url)
    engine = create_async_engine(db_url)
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.drop_all)
        await connection.run_sync(Base.metadata.create_all)
    await engine.dispose()
    yield
    await dispose_engine(db_url)


@pytest.fixture()
def stripe_fake() -> FakeStripeClient:
    return FakeStripeClient()


@pytest.fixture()
def push_requests() -> list[httpx.Request]:
    return []


@pytest_asyncio.fixture()
async def venue(reset_database: None, db_url: str) -> dict[str, Any]:
    """Seed users, one published event with tables, and a catalog."""
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        admin = User(
            email="admin@example.com",
            display_name="Avery Admin",
            role=UserRole.ADMIN,
            status=UserStatus.ACTIVE,
        )
        staff = User(
            email="door@example.com",
            display_name="Dana Door",
            role=UserRole.STAFF,
            status=UserStatus.ACTIVE,
        )
        customer = User(
            email="guest@example.com",
            display_name="Gale Guest",
            role=UserRole.CUSTOMER,
            status=UserStatus.ACTIVE,
            push_token="ExponentPushToken[guest-device]",
        )
        other = User(
            email="other@example.com",
            display_name="Oak Other",
            role=UserRole.CUSTOMER,
            status=UserStatus.ACTIVE,
        )
        session.add_all([admin, staff, customer, other])

        event = Event(
            title="Saturday Night",
            starts_at=datetime.now(UTC) + timedelta(days=3),
            is_published=True,
        )
        draft = Event(
            title="Draft Night",
            starts_at=datetime.now(UTC) + timedelta(days=10),
            is_published=False,
        )
        session.add_all([event, draft])
        await session.flush()

        tables = {
            "t1": VenueTable(
                event_id=event.id,
                number=1,
                capacity=6,
                price=Decimal("250.00"),
                location=TableLocation.LEFT,
            ),
            "t2": VenueTable(
                event_id=event.id,
                number=2,
                capacity=6,
                price=Decimal("325.00"),
                location=TableLocation.CENTER,
            ),
            "t3": VenueTable(
                event_id=event.id,
                number=3,
                capacity=4,
                price=Decimal("150.00"),
                location=TableLocation.RIGHT,
            ),
            "t4": VenueTable(
                event_id=event.id,
                number=4,
                capacity=10,
                price=Decimal("600.00"),
                location=TableLocation.CENTER,
                minimum_bottles=2,
            ),
        }
        draft_table = VenueTable(
            event_id=draft.id, number=1, capacity=6, price=Decimal("200.00")
        )
        session.add_all([*tables.values(), draft_table])

        vodka = CatalogItem(kind=CatalogItemKind.BOTTLE, name="Vodka", price=Decimal("100.00"))
        champagne = CatalogItem(
            kind=CatalogItemKind.BOTTLE, name="Champagne", price=Decimal("50.00")
        )
        retired = CatalogItem(
            kind=CatalogItemKind.BOTTLE,
            name="Retired Rum",
            price=Decimal("80.00"),
            active=False,
        )
        cranberry = CatalogItem(
            kind=CatalogItemKind.MIXER, name="Cranberry", price=Decimal("20.00")
        )
        session.add_all([vodka, champagne, retired, cranberry])
        await session.commit()

        return {
            "admin_id": admin.id,
            "staff_id": staff.id,
            "customer_id": customer.id,
            "other_id": other.id,
            "event_id": event.id,
            "draft_event_id": draft.id,
            "draft_table_id": draft_table.id,
            **{f"{key}_id": table.id for key, table in tables.items()},
            "vodka_id": vodka.id,
            "champagne_id": champagne.id,
            "retired_id": retired.id,
            "cranberry_id": cranberry.id,
        }


def auth_headers(user_id: Any) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(str(user_id))}"}


@pytest_asyncio.fixture()
async def app_context(
    venue: dict[str, Any],
    stripe_fake: FakeStripeClient,
    push_requests: list[httpx.Request],
) -> AsyncIterator[dict[str, Any]]:
    """Yield an async client wired to the fake processor and a mock push gateway."""

    def _push_handler(request: httpx.Request) -> httpx.Response:
        push_requests.append(request)
        return httpx.Response(200, json={"data": [{"status": "ok", "id": "ticket"}]})

    push_client = ExpoPushClient(
        "https://push.test/send", transport=httpx.MockTransport(_push_handler)
    )
    app.dependency_overrides[deps.get_stripe_client] = lambda: stripe_fake
    app.dependency_overrides[deps.get_optional_stripe_client] = lambda: stripe_fake
    app.dependency_overrides[deps.get_push_client] = lambda: push_client

    context = {
        **venue,
        "stripe": stripe_fake,
        "push_requests": push_requests,
        "admin_headers": auth_headers(venue["admin_id"]),
        "staff_headers": auth_headers(venue["staff_id"]),
        "customer_headers": auth_headers(venue["customer_id"]),
        "other_headers": auth_headers(venue["other_id"]),
    }
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            context["client"] = client
            yield context
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def book_table(
    venue: dict[str, Any], stripe_fake: FakeStripeClient, db_url: str
) -> Callable[..., Any]:
    """Factory that reserves a table through the services, optionally paying for it."""

    async def _book(
        *,
        user_key: str = "customer_id",
        table_key: str = "t1_id",
        guest_count: int = 4,
        bottle_keys: tuple[str, ...] = (),
        mixer_keys: tuple[str, ...] = (),
        paid: bool = False,
    ) -> Any:
        sessionmaker = get_sessionmaker(db_url)
        async with sessionmaker() as session:
            user = await session.get(User, venue[user_key])
            assert user is not None
            reservation = await reservation_service.create_reservation(
                session,
                user=user,
                event_id=venue["event_id"],
                table_id=venue[table_key],
                guest_count=guest_count,
                bottle_ids=[venue[key] for key in bottle_keys],
                mixer_ids=[venue[key] for key in mixer_keys],
            )
            if paid:
                result = await payments_service.create_payment_intent(
                    session,
                    amount=reservation.total_amount,
                    reservation_id=reservation.id,
                    event_id=reservation.event_id,
                    user_id=reservation.user_id,
                    stripe=stripe_fake,
                )
                stripe_fake.succeed(result.payment_id)
                await payments_service.reconcile_payment(
                    session, payment_intent_id=result.payment_id, stripe=stripe_fake
                )
                reservation = await reservation_service.get_reservation(
                    session, reservation_id=reservation.id
                )
            return reservation

    return _book
