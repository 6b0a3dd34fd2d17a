"""Settlement schema.

Revision ID: 001_settlement
Revises: None
Create Date: 2026-10-19

Creates the tables for booking settlement and host withdrawals:
- Bookings (payment and lifecycle state)
- Payment accounts (payout destinations)
- Withdrawal requests
- Payment webhook events
"""

from typing import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers
revision: str = "001_settlement"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create all database tables."""

    # ==================== BOOKINGS ====================
    op.create_table(
        "bookings",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("product_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("host_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("guest_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("guest_email", sa.String(255)),
        sa.Column("check_in", sa.Date, nullable=False),
        sa.Column("check_out", sa.Date, nullable=False),
        sa.Column("guest_count", sa.Integer, nullable=False),
        sa.Column("price_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("commission_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("host_earnings_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="EUR"),
        sa.Column("external_payment_ref", sa.String(255)),
        sa.Column("checkout_session_id", sa.String(255)),
        sa.Column("lifecycle_state", sa.String(20), nullable=False, server_default="CREATED", index=True),
        sa.Column("payment_state", sa.String(20), nullable=False, server_default="UNPAID", index=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True)),
        sa.Column("captured_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("checked_out_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("check_out > check_in", name="ck_bookings_dates"),
        sa.CheckConstraint("guest_count >= 1", name="ck_bookings_guest_count"),
        sa.CheckConstraint("price_amount > 0", name="ck_bookings_price_positive"),
    )
    op.create_index(
        "ix_bookings_external_payment_ref", "bookings", ["external_payment_ref"], unique=True
    )

    # ==================== PAYMENT ACCOUNTS ====================
    op.create_table(
        "payment_accounts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("method", sa.String(30), nullable=False),
        sa.Column("account_holder_name", sa.String(255), nullable=False),
        sa.Column("details", postgresql.JSONB, nullable=False),
        sa.Column("is_default", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_validated", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("validated_by", postgresql.UUID(as_uuid=True)),
        sa.Column("validated_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    # At most one default account per user
    op.create_index(
        "uq_payment_accounts_one_default",
        "payment_accounts",
        ["user_id"],
        unique=True,
        postgresql_where=sa.text("is_default"),
    )

    # ==================== WITHDRAWALS ====================
    op.create_table(
        "withdrawal_requests",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("available_balance_snapshot", sa.Numeric(12, 2), nullable=False),
        sa.Column("withdrawal_type", sa.String(20), nullable=False),
        sa.Column(
            "payment_account_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("payment_accounts.id", ondelete="RESTRICT"),
            nullable=False,
            index=True,
        ),
        sa.Column("payment_method", sa.String(30), nullable=False),
        sa.Column("payment_details_snapshot", postgresql.JSONB, nullable=False),
        sa.Column("status", sa.String(30), nullable=False, server_default="PENDING", index=True),
        sa.Column("notes", sa.Text),
        sa.Column("admin_notes", sa.Text),
        sa.Column("created_by", postgresql.UUID(as_uuid=True)),
        sa.Column("processed_by", postgresql.UUID(as_uuid=True)),
        sa.Column("processed_at", sa.DateTime(timezone=True)),
        sa.Column("paid_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("amount > 0", name="ck_withdrawal_requests_amount_positive"),
        sa.CheckConstraint(
            "amount <= available_balance_snapshot",
            name="ck_withdrawal_requests_amount_within_balance",
        ),
    )

    # ==================== WEBHOOK EVENTS ====================
    op.create_table(
        "payment_webhook_events",
        sa.Column("event_id", sa.String(255), primary_key=True),
        sa.Column("event_type", sa.String(100), nullable=False, index=True),
        sa.Column("external_payment_ref", sa.String(255), index=True),
        sa.Column("idempotency_key", sa.String(64), index=True),
        sa.Column("payload", postgresql.JSONB, nullable=False),
        sa.Column("outcome", sa.String(20), nullable=False),
        sa.Column("detail", sa.Text),
        sa.Column("attempts", sa.Integer, nullable=False, server_default="1"),
        sa.Column("received_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("processed_at", sa.DateTime(timezone=True)),
    )


def downgrade() -> None:
    """Drop all database tables in reverse order."""
    op.drop_table("payment_webhook_events")
    op.drop_table("withdrawal_requests")
    op.drop_index("uq_payment_accounts_one_default", table_name="payment_accounts")
    op.drop_table("payment_accounts")
    op.drop_index("ix_bookings_external_payment_ref", table_name="bookings")
    op.drop_table("bookings")
