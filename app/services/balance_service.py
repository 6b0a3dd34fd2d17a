"""Host balance calculation.

    total_earned      = Σ host earnings of PAID, non-cancelled bookings
    reserved          = Σ withdrawals in PENDING, ACCOUNT_VALIDATION, APPROVED, PAID
    available_balance = total_earned − reserved

A balance read is only a safe basis for a write when it is taken with
``lock=True`` in the same transaction as the write.
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.locking import acquire_xact_lock, host_balance_lock_key
from app.domain.withdrawal_state import COMMITTED_STATUSES, RESERVING_STATUSES, WithdrawalStatus
from app.repositories.booking import BookingRepository
from app.repositories.withdrawal import WithdrawalRepository
from app.utils.money import ZERO, half_of


@dataclass(frozen=True)
class HostBalance:
    host_id: UUID
    total_earned: Decimal
    total_withdrawn: Decimal
    pending_withdrawals: Decimal
    available_balance: Decimal
    can_withdraw_partial: bool
    can_withdraw_full: bool
    partial_amount: Decimal
    full_amount: Decimal

    @property
    def reserved(self) -> Decimal:
        return self.total_withdrawn + self.pending_withdrawals


class BalanceService:
    """Service computing what a host has earned and can still withdraw."""

    def __init__(self, partial_threshold: Decimal | None = None) -> None:
        self.partial_threshold = (
            partial_threshold if partial_threshold is not None else settings.withdrawal_partial_threshold
        )

    async def get_balance(self, db: AsyncSession, host_id: UUID, lock: bool = False) -> HostBalance:
        """Compute a host's balance.

        Args:
            db: Database session
            host_id: Host user ID
            lock: Take the per-host balance lock first (held until commit)

        Returns:
            HostBalance: Balance snapshot
        """
        if lock:
            await acquire_xact_lock(db, host_balance_lock_key(host_id))

        total_earned = await BookingRepository(db).total_host_earnings(host_id)
        withdrawals = WithdrawalRepository(db)
        total_withdrawn = await withdrawals.sum_amount(host_id, [WithdrawalStatus.PAID])
        reserved = await withdrawals.sum_amount(host_id, RESERVING_STATUSES)
        pending = reserved - total_withdrawn

        available = total_earned - reserved
        withdrawable = max(available, ZERO)

        return HostBalance(
            host_id=host_id,
            total_earned=total_earned,
            total_withdrawn=total_withdrawn,
            pending_withdrawals=pending,
            available_balance=available,
            can_withdraw_partial=available >= self.partial_threshold,
            can_withdraw_full=available > ZERO,
            partial_amount=half_of(withdrawable),
            full_amount=withdrawable,
        )

    async def committed_total(self, db: AsyncSession, host_id: UUID) -> Decimal:
        """Σ of APPROVED and PAID withdrawals, bounded by total earnings."""
        return await WithdrawalRepository(db).sum_amount(host_id, COMMITTED_STATUSES)
