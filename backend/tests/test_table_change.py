"""Tests for moving reservations between tables."""

from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import select

from tableside.db.session import get_sessionmaker
from tableside.models import (
    PaymentKind,
    PaymentRecordStatus,
    Refund,
    Reservation,
    ReservationStatus,
    VenueTable,
)
from tableside.services import payments_service, pricing_service, table_change_service
from tableside.services.errors import (
    PaymentIncompleteError,
    TableUnavailableError,
    UpstreamError,
    ValidationError,
)

pytestmark = pytest.mark.asyncio

UPGRADE_DELTA = Decimal("77.18")


async def _tables(db_url: str, *table_ids) -> list[VenueTable]:
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        return [await session.get(VenueTable, table_id) for table_id in table_ids]


async def _reservation(db_url: str, reservation_id) -> Reservation:
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        reservation = await session.get(Reservation, reservation_id)
        assert reservation is not None
        return reservation


async def _move_without_settling(db_url: str, reservation_id, new_table_id) -> None:
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        await table_change_service.change_table(
            session,
            reservation_id=reservation_id,
            new_table_id=new_table_id,
            admin_override=True,
        )
        reservation = await session.get(Reservation, reservation_id)
        assert reservation is not None
        reservation.table_change_amount = None
        await session.commit()


async def test_upgrade_requests_payment_before_moving(
    book_table, stripe_fake, db_url: str, venue
) -> None:
    reservation = await book_table(bottle_keys=("vodka_id",), paid=True)
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        outcome = await table_change_service.change_table(
            session,
            reservation_id=reservation.id,
            new_table_id=venue["t2_id"],
            stripe=stripe_fake,
        )
    assert outcome.status == table_change_service.NEEDS_PAYMENT
    assert outcome.amount == UPGRADE_DELTA
    assert outcome.client_secret
    intent = stripe_fake.intents[outcome.payment_intent_id]
    assert intent.metadata["type"] == PaymentKind.TABLE_CHANGE.value
    assert intent.metadata["newTableId"] == str(venue["t2_id"])
    assert intent.metadata["previousTableId"] == str(venue["t1_id"])
    assert intent.amount == 7718

    stored = await _reservation(db_url, reservation.id)
    assert stored.table_id == venue["t1_id"]
    assert stored.total_amount == reservation.total_amount


async def test_paid_upgrade_moves_reservation(
    book_table, stripe_fake, db_url: str, venue
) -> None:
    reservation = await book_table(bottle_keys=("vodka_id",), paid=True)
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        pending = await table_change_service.change_table(
            session,
            reservation_id=reservation.id,
            new_table_id=venue["t2_id"],
            stripe=stripe_fake,
        )
    stripe_fake.succeed(pending.payment_intent_id)
    async with sessionmaker() as session:
        outcome = await table_change_service.change_table(
            session,
            reservation_id=reservation.id,
            new_table_id=venue["t2_id"],
            stripe=stripe_fake,
            payment_intent_id=pending.payment_intent_id,
        )
        record = await payments_service.get_record(session, pending.payment_intent_id)
        assert record is not None
        assert record.status is PaymentRecordStatus.SUCCEEDED

    assert outcome.status == table_change_service.COMPLETED
    moved = outcome.reservation
    assert moved.table_id == venue["t2_id"]
    assert moved.table_number == 2
    assert moved.previous_table_id == venue["t1_id"]
    assert moved.previous_table_number == 1
    assert moved.table_changed_at is not None
    assert moved.table_change_amount == UPGRADE_DELTA
    assert moved.table_change_invoice_id == pending.payment_intent_id
    assert moved.total_amount == reservation.total_amount + UPGRADE_DELTA

    old_table, new_table = await _tables(db_url, venue["t1_id"], venue["t2_id"])
    assert old_table.reserved is False
    assert old_table.reservation_id is None
    assert new_table.reserved is True
    assert new_table.reservation_id == reservation.id


async def test_upgrade_with_unpaid_intent_is_rejected(
    book_table, stripe_fake, db_url: str, venue
) -> None:
    reservation = await book_table(paid=True)
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        pending = await table_change_service.change_table(
            session,
            reservation_id=reservation.id,
            new_table_id=venue["t2_id"],
            stripe=stripe_fake,
        )
    async with sessionmaker() as session:
        with pytest.raises(PaymentIncompleteError):
            await table_change_service.change_table(
                session,
                reservation_id=reservation.id,
                new_table_id=venue["t2_id"],
                stripe=stripe_fake,
                payment_intent_id=pending.payment_intent_id,
            )
    stored = await _reservation(db_url, reservation.id)
    assert stored.table_id == venue["t1_id"]


async def test_upgrade_intent_for_another_table_is_rejected(
    book_table, stripe_fake, db_url: str, venue
) -> None:
    reservation = await book_table(paid=True)
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        pending = await table_change_service.change_table(
            session,
            reservation_id=reservation.id,
            new_table_id=venue["t2_id"],
            stripe=stripe_fake,
        )
    stripe_fake.succeed(pending.payment_intent_id)
    stripe_fake.intents[pending.payment_intent_id].metadata["newTableId"] = str(
        venue["t4_id"]
    )
    async with sessionmaker() as session:
        with pytest.raises(ValidationError, match="Invalid payment"):
            await table_change_service.change_table(
                session,
                reservation_id=reservation.id,
                new_table_id=venue["t2_id"],
                stripe=stripe_fake,
                payment_intent_id=pending.payment_intent_id,
            )


async def test_downgrade_refunds_difference(
    book_table, stripe_fake, db_url: str, venue
) -> None:
    reservation = await book_table(
        table_key="t2_id", bottle_keys=("vodka_id",), paid=True
    )
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        outcome = await table_change_service.change_table(
            session,
            reservation_id=reservation.id,
            new_table_id=venue["t1_id"],
            stripe=stripe_fake,
        )
        refunds = (await session.execute(select(Refund))).scalars().all()
        record = await payments_service.get_record(session, reservation.payment_id)

    assert outcome.status == table_change_service.REFUNDED
    assert outcome.amount == -UPGRADE_DELTA
    assert outcome.refund_id is not None
    assert outcome.reservation.table_change_refund_id == outcome.refund_id
    assert outcome.reservation.total_amount == reservation.total_amount - UPGRADE_DELTA

    payment_intent_id, refund = stripe_fake.refunds[0]
    assert payment_intent_id == reservation.payment_id
    assert refund.amount == 7718
    assert [row.provider_refund_id for row in refunds] == [outcome.refund_id]
    assert record is not None
    assert record.status is PaymentRecordStatus.PARTIAL_REFUND


async def test_failed_downgrade_refund_leaves_tables_untouched(
    book_table, stripe_fake, db_url: str, venue
) -> None:
    reservation = await book_table(table_key="t2_id", paid=True)
    stripe_fake.fail_refunds = True
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        with pytest.raises(UpstreamError):
            await table_change_service.change_table(
                session,
                reservation_id=reservation.id,
                new_table_id=venue["t1_id"],
                stripe=stripe_fake,
            )

    stored = await _reservation(db_url, reservation.id)
    assert stored.table_id == venue["t2_id"]
    assert stored.total_amount == reservation.total_amount
    assert stored.previous_table_id is None
    t1, t2 = await _tables(db_url, venue["t1_id"], venue["t2_id"])
    assert t1.reserved is False
    assert t2.reservation_id == reservation.id


async def test_unpaid_downgrade_moves_without_refund(
    book_table, stripe_fake, db_url: str, venue
) -> None:
    reservation = await book_table(table_key="t2_id")
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        outcome = await table_change_service.change_table(
            session,
            reservation_id=reservation.id,
            new_table_id=venue["t1_id"],
            stripe=stripe_fake,
        )
    assert outcome.status == table_change_service.COMPLETED
    assert outcome.reservation.table_id == venue["t1_id"]
    assert stripe_fake.refunds == []


async def test_admin_override_skips_payment(
    book_table, stripe_fake, db_url: str, venue
) -> None:
    reservation = await book_table(paid=True)
    intents_before = set(stripe_fake.intents)
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        outcome = await table_change_service.change_table(
            session,
            reservation_id=reservation.id,
            new_table_id=venue["t4_id"],
            admin_override=True,
        )
    assert outcome.status == table_change_service.COMPLETED
    assert outcome.amount == Decimal("0")
    assert outcome.reservation.table_id == venue["t4_id"]
    assert outcome.reservation.total_amount == reservation.total_amount
    assert set(stripe_fake.intents) == intents_before


@pytest.mark.parametrize(
    ("from_key", "to_key", "paid", "payment_intent_id"),
    [
        ("t1_id", "t2_id", False, None),
        ("t1_id", "t2_id", False, "pi_already_paid"),
        ("t2_id", "t1_id", True, None),
    ],
)
async def test_change_without_processor_fails_before_moving(
    book_table,
    db_url: str,
    venue,
    from_key: str,
    to_key: str,
    paid: bool,
    payment_intent_id: str | None,
) -> None:
    reservation = await book_table(table_key=from_key, paid=paid)
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        with pytest.raises(UpstreamError, match="not configured"):
            await table_change_service.change_table(
                session,
                reservation_id=reservation.id,
                new_table_id=venue[to_key],
                payment_intent_id=payment_intent_id,
            )

    stored = await _reservation(db_url, reservation.id)
    assert stored.table_id == venue[from_key]
    assert stored.total_amount == reservation.total_amount
    old, new = await _tables(db_url, venue[from_key], venue[to_key])
    assert old.reservation_id == reservation.id
    assert new.reserved is False


async def test_move_guards(book_table, stripe_fake, db_url: str, venue) -> None:
    reservation = await book_table(guest_count=6)
    await book_table(user_key="other_id", table_key="t2_id")
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        with pytest.raises(ValidationError, match="already holds"):
            await table_change_service.change_table(
                session,
                reservation_id=reservation.id,
                new_table_id=venue["t1_id"],
                stripe=stripe_fake,
            )
        with pytest.raises(TableUnavailableError):
            await table_change_service.change_table(
                session,
                reservation_id=reservation.id,
                new_table_id=venue["t2_id"],
                stripe=stripe_fake,
            )
        with pytest.raises(ValidationError, match="seats at most 4"):
            await table_change_service.change_table(
                session,
                reservation_id=reservation.id,
                new_table_id=venue["t3_id"],
                stripe=stripe_fake,
            )


async def test_cancelled_reservation_cannot_move(
    book_table, stripe_fake, db_url: str, venue
) -> None:
    reservation = await book_table()
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        stored = await session.get(Reservation, reservation.id)
        assert stored is not None
        stored.status = ReservationStatus.CANCELLED
        await session.commit()
        with pytest.raises(ValidationError, match="cancelled"):
            await table_change_service.change_table(
                session,
                reservation_id=reservation.id,
                new_table_id=venue["t3_id"],
                stripe=stripe_fake,
            )


async def test_fix_upgrade_parks_pending_payment(
    book_table, stripe_fake, db_url: str, venue
) -> None:
    reservation = await book_table(bottle_keys=("vodka_id",), paid=True)
    await _move_without_settling(db_url, reservation.id, venue["t2_id"])

    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        outcome = await table_change_service.fix_table_change(
            session, reservation_id=reservation.id, stripe=stripe_fake
        )
    assert outcome.status == table_change_service.NEEDS_PAYMENT
    assert outcome.amount == UPGRADE_DELTA
    assert outcome.reservation.pending_table_change_payment_intent_id == (
        outcome.payment_intent_id
    )
    assert outcome.reservation.pending_table_change_amount == UPGRADE_DELTA
    intent = stripe_fake.intents[outcome.payment_intent_id]
    assert intent.metadata["type"] == PaymentKind.TABLE_CHANGE_FIX.value

    async with sessionmaker() as session:
        again = await table_change_service.fix_table_change(
            session, reservation_id=reservation.id, stripe=stripe_fake
        )
    assert again.status == table_change_service.NEEDS_PAYMENT
    assert again.payment_intent_id == outcome.payment_intent_id

    stripe_fake.succeed(outcome.payment_intent_id)
    async with sessionmaker() as session:
        completed = await payments_service.complete_table_change_payment(
            session,
            reservation_id=reservation.id,
            payment_intent_id=outcome.payment_intent_id,
            stripe=stripe_fake,
        )
    assert completed.table_change_amount == UPGRADE_DELTA
    assert completed.total_amount == reservation.total_amount + UPGRADE_DELTA

    async with sessionmaker() as session:
        with pytest.raises(ValidationError, match="already applied"):
            await table_change_service.fix_table_change(
                session, reservation_id=reservation.id, stripe=stripe_fake
            )


async def test_fix_downgrade_refunds(book_table, stripe_fake, db_url: str, venue) -> None:
    reservation = await book_table(
        table_key="t2_id", bottle_keys=("vodka_id",), paid=True
    )
    await _move_without_settling(db_url, reservation.id, venue["t1_id"])

    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        outcome = await table_change_service.fix_table_change(
            session, reservation_id=reservation.id, stripe=stripe_fake
        )
    assert outcome.status == table_change_service.REFUNDED
    assert outcome.amount == -UPGRADE_DELTA
    assert outcome.reservation.total_amount == reservation.total_amount - UPGRADE_DELTA
    assert stripe_fake.refunds[0][1].amount == 7718


async def test_fix_same_price_reports_no_change(
    book_table, stripe_fake, db_url: str, venue
) -> None:
    reservation = await book_table(paid=True)
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        table = await session.get(VenueTable, venue["t3_id"])
        assert table is not None
        table.price = Decimal("250.00")
        await session.commit()
    await _move_without_settling(db_url, reservation.id, venue["t3_id"])

    async with sessionmaker() as session:
        outcome = await table_change_service.fix_table_change(
            session, reservation_id=reservation.id, stripe=stripe_fake
        )
    assert outcome.status == table_change_service.NO_CHANGE
    assert outcome.amount == pricing_service.ZERO


async def test_fix_requires_a_previous_table(
    book_table, stripe_fake, db_url: str
) -> None:
    reservation = await book_table()
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        with pytest.raises(ValidationError, match="no table change"):
            await table_change_service.fix_table_change(
                session, reservation_id=reservation.id, stripe=stripe_fake
            )


async def test_fix_refund_requires_original_payment(
    book_table, stripe_fake, db_url: str, venue
) -> None:
    reservation = await book_table(table_key="t2_id")
    await _move_without_settling(db_url, reservation.id, venue["t1_id"])
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        with pytest.raises(ValidationError, match="Payment ID is required"):
            await table_change_service.fix_table_change(
                session, reservation_id=reservation.id, stripe=stripe_fake
            )
