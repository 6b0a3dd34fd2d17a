"""Booking database model."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, Date, Integer, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.database import Base, UTCDateTime, utc_now
from app.domain.booking_state import LifecycleState, PaymentState


class Booking(Base):
    """A stay, created and moved only by payment provider events."""

    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("check_out > check_in", name="ck_bookings_dates"),
        CheckConstraint("guest_count >= 1", name="ck_bookings_guest_count"),
        CheckConstraint("price_amount > 0", name="ck_bookings_price_positive"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    host_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    guest_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    guest_email: Mapped[str | None] = mapped_column(String(255))

    # Stay
    check_in: Mapped[date] = mapped_column(Date, nullable=False)
    check_out: Mapped[date] = mapped_column(Date, nullable=False)
    guest_count: Mapped[int] = mapped_column(Integer, nullable=False)

    # Pricing
    price_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    commission_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False
    )  # percent, 10.00 = 10 %
    host_earnings_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False
    )  # price × (1 − commission), fixed at creation
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="EUR")

    # Provider references. external_payment_ref is write-once.
    external_payment_ref: Mapped[str | None] = mapped_column(
        String(255), unique=True, index=True
    )
    checkout_session_id: Mapped[str | None] = mapped_column(String(255))

    # State
    lifecycle_state: Mapped[str] = mapped_column(
        String(20), nullable=False, default=LifecycleState.CREATED.value, index=True
    )
    payment_state: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentState.UNPAID.value, index=True
    )

    # Timestamps
    confirmed_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    captured_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime()
    )  # payout eligible
    cancelled_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    checked_out_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, onupdate=utc_now, server_default=func.now()
    )

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id} ref={self.external_payment_ref} "
            f"{self.lifecycle_state}/{self.payment_state}>"
        )
