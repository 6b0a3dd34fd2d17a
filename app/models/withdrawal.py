"""Withdrawal request model."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import CheckConstraint, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.database import Base, JSONType, UTCDateTime, utc_now
from app.domain.withdrawal_state import WithdrawalStatus


class WithdrawalRequest(Base):
    """A host's request to move part of their available balance to a payout account.

    ``amount``, ``available_balance_snapshot`` and ``payment_details_snapshot``
    are frozen at insert (see ``app.core.immutability``).
    """

    __tablename__ = "withdrawal_requests"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_withdrawal_requests_amount_positive"),
        CheckConstraint(
            "amount <= available_balance_snapshot",
            name="ck_withdrawal_requests_amount_within_balance",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    available_balance_snapshot: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    withdrawal_type: Mapped[str] = mapped_column(String(20), nullable=False)

    payment_account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("payment_accounts.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    payment_method: Mapped[str] = mapped_column(String(30), nullable=False)
    payment_details_snapshot: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)

    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default=WithdrawalStatus.PENDING.value, index=True
    )
    notes: Mapped[str | None] = mapped_column(Text)
    admin_notes: Mapped[str | None] = mapped_column(Text)

    # Audit
    created_by: Mapped[uuid.UUID | None] = mapped_column(Uuid)  # admin creating on a host's behalf
    processed_by: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    processed_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    paid_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    cancelled_at: Mapped[datetime | None] = mapped_column(UTCDateTime())

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, onupdate=utc_now, server_default=func.now()
    )
