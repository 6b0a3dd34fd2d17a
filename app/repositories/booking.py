"""Booking repository."""

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.booking_state import LifecycleState, PaymentState
from app.models.booking import Booking
from app.repositories.base import BaseRepository
from app.utils.money import to_money


class BookingRepository(BaseRepository[Booking]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(Booking, session)

    async def get_by_payment_ref(self, external_payment_ref: str, for_update: bool = False) -> Booking | None:
        stmt = select(Booking).where(Booking.external_payment_ref == external_payment_ref)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def insert_if_absent(self, values: dict[str, Any]) -> bool:
        """INSERT ... ON CONFLICT (external_payment_ref) DO NOTHING.

        Args:
            values: Column values, must include ``external_payment_ref``

        Returns:
            bool: True if this call inserted the row, False if it already existed
        """
        if self.dialect_name == "postgresql":
            insert = postgresql.insert
        elif self.dialect_name == "sqlite":
            insert = sqlite.insert
        else:
            raise RuntimeError(f"Conditional insert not supported on {self.dialect_name}")

        stmt = (
            insert(Booking)
            .values(**values)
            .on_conflict_do_nothing(index_elements=[Booking.external_payment_ref])
            .returning(Booking.id)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def total_host_earnings(self, host_id: UUID) -> Decimal:
        """Sum of host earnings over paid, non-cancelled bookings."""
        stmt = select(func.coalesce(func.sum(Booking.host_earnings_amount), 0)).where(
            Booking.host_id == host_id,
            Booking.payment_state == PaymentState.PAID.value,
            Booking.lifecycle_state != LifecycleState.CANCELLED.value,
        )
        result = await self.session.execute(stmt)
        return to_money(result.scalar())

    async def list_finished_stays(self, before: date, limit: int = 500) -> list[Booking]:
        """Confirmed, paid bookings whose check-out date has passed."""
        stmt = (
            select(Booking)
            .where(
                Booking.lifecycle_state == LifecycleState.CONFIRMED.value,
                Booking.payment_state == PaymentState.PAID.value,
                Booking.check_out <= before,
            )
            .order_by(Booking.check_out)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
