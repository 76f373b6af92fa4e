"""Initial venue schema.

Revision ID: 0001
Revises:
Create Date: 2026-10-17
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

JSON_TYPE = postgresql.JSONB(astext_type=sa.Text()).with_variant(sa.JSON(), "sqlite")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("display_name", sa.String(length=200)),
        sa.Column("phone_number", sa.String(length=32)),
        sa.Column(
            "role",
            sa.Enum("ADMIN", "STAFF", "CUSTOMER", name="userrole"),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum("ACTIVE", "DISABLED", name="userstatus"),
            nullable=False,
        ),
        sa.Column("push_token", sa.String(length=255)),
        *_timestamps(),
    )

    op.create_table(
        "events",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("flyer_url", sa.String(length=1024)),
        sa.Column("is_published", sa.Boolean(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "event_tables",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "event_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("events.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("number", sa.Integer(), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column(
            "location",
            sa.Enum("LEFT", "RIGHT", "CENTER", name="tablelocation"),
            nullable=False,
        ),
        sa.Column("minimum_bottles", sa.Integer(), nullable=False),
        sa.Column("reserved", sa.Boolean(), nullable=False),
        sa.Column("reservation_id", sa.Uuid(as_uuid=True)),
        sa.Column("reserved_by", sa.Uuid(as_uuid=True)),
        *_timestamps(),
        sa.UniqueConstraint("event_id", "number", name="uq_event_tables_event_number"),
    )
    op.create_index("ix_event_tables_event_id", "event_tables", ["event_id"])
    op.create_index("ix_event_tables_reservation_id", "event_tables", ["reservation_id"])

    op.create_table(
        "catalog_items",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "kind",
            sa.Enum("BOTTLE", "MIXER", name="catalogitemkind"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("image_url", sa.String(length=1024)),
        sa.Column("active", sa.Boolean(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "reservations",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "event_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("events.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("table_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("table_number", sa.Integer(), nullable=False),
        sa.Column("guest_count", sa.Integer(), nullable=False),
        sa.Column("bottles", JSON_TYPE, nullable=False),
        sa.Column("mixers", JSON_TYPE, nullable=False),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "PENDING",
                "CONFIRMED",
                "CANCELLED",
                "CHECKED_IN",
                "COMPLETED",
                name="reservationstatus",
            ),
            nullable=False,
        ),
        sa.Column("user_name", sa.String(length=200)),
        sa.Column("user_email", sa.String(length=320)),
        sa.Column("payment_id", sa.String(length=255)),
        sa.Column("payment_status", sa.String(length=64)),
        sa.Column("previous_table_id", sa.Uuid(as_uuid=True)),
        sa.Column("previous_table_number", sa.Integer()),
        sa.Column("table_changed_at", sa.DateTime(timezone=True)),
        sa.Column("pending_table_change_payment_intent_id", sa.String(length=255)),
        sa.Column("pending_table_change_amount", sa.Numeric(12, 2)),
        sa.Column("table_change_invoice_id", sa.String(length=255)),
        sa.Column("table_change_amount", sa.Numeric(12, 2)),
        sa.Column("table_change_refund_id", sa.String(length=255)),
        sa.Column("checked_in_at", sa.DateTime(timezone=True)),
        sa.Column("checked_in_by", sa.String(length=200)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_by", sa.String(length=200)),
        sa.Column("cancellation_reason", sa.String(length=1024)),
        sa.Column("refund_id", sa.String(length=255)),
        sa.Column("refund_amount", sa.Numeric(12, 2)),
        *_timestamps(),
    )
    op.create_index("ix_reservations_event_id", "reservations", ["event_id"])
    op.create_index("ix_reservations_user_id", "reservations", ["user_id"])

    op.create_table(
        "payment_records",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("provider", sa.String(length=32), nullable=False),
        sa.Column("provider_payment_intent_id", sa.String(length=255), nullable=False),
        sa.Column(
            "kind",
            sa.Enum(
                "INITIAL_BOOKING",
                "TABLE_CHANGE",
                "TABLE_CHANGE_FIX",
                name="paymentkind",
            ),
            nullable=False,
        ),
        sa.Column(
            "reservation_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("reservations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("event_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("user_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(length=12), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "REQUIRES_PAYMENT_METHOD",
                "REQUIRES_CONFIRMATION",
                "REQUIRES_ACTION",
                "PROCESSING",
                "SUCCEEDED",
                "CANCELED",
                "FAILED",
                "REFUNDED",
                "PARTIAL_REFUND",
                name="paymentrecordstatus",
            ),
            nullable=False,
        ),
        sa.Column("reservation_created", sa.Boolean(), nullable=False),
        sa.Column("failure_reason", sa.Text()),
        *_timestamps(),
    )
    op.create_index(
        "ix_payment_records_provider_payment_intent_id",
        "payment_records",
        ["provider_payment_intent_id"],
        unique=True,
    )
    op.create_index(
        "ix_payment_records_reservation_id", "payment_records", ["reservation_id"]
    )

    op.create_table(
        "refunds",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("provider_refund_id", sa.String(length=255), nullable=False, unique=True),
        sa.Column("payment_intent_id", sa.String(length=255), nullable=False),
        sa.Column(
            "reservation_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("reservations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.String(length=64), nullable=False),
        sa.Column("reason", sa.String(length=1024)),
        sa.Column("processed_by", sa.String(length=200)),
        *_timestamps(),
    )
    op.create_index("ix_refunds_reservation_id", "refunds", ["reservation_id"])

    op.create_table(
        "payment_events",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("provider_event_id", sa.String(length=255), nullable=False, unique=True),
        sa.Column(
            "received_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("raw", JSON_TYPE, nullable=False),
    )


def downgrade() -> None:
    op.drop_table("payment_events")
    op.drop_index("ix_refunds_reservation_id", table_name="refunds")
    op.drop_table("refunds")
    op.drop_index("ix_payment_records_reservation_id", table_name="payment_records")
    op.drop_index(
        "ix_payment_records_provider_payment_intent_id", table_name="payment_records"
    )
    op.drop_table("payment_records")
    op.drop_index("ix_reservations_user_id", table_name="reservations")
    op.drop_index("ix_reservations_event_id", table_name="reservations")
    op.drop_table("reservations")
    op.drop_table("catalog_items")
    op.drop_index("ix_event_tables_reservation_id", table_name="event_tables")
    op.drop_index("ix_event_tables_event_id", table_name="event_tables")
    op.drop_table("event_tables")
    op.drop_table("events")
    op.drop_table("users")
    for enum_name in (
        "paymentrecordstatus",
        "paymentkind",
        "reservationstatus",
        "catalogitemkind",
        "tablelocation",
        "userstatus",
        "userrole",
    ):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
