"""Withdrawal request repository."""

from collections.abc import Iterable
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.withdrawal_state import WithdrawalStatus
from app.models.withdrawal import WithdrawalRequest
from app.repositories.base import BaseRepository
from app.utils.money import to_money


class WithdrawalRepository(BaseRepository[WithdrawalRequest]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(WithdrawalRequest, session)

    async def sum_amount(self, user_id: UUID, statuses: Iterable[str]) -> Decimal:
        """Total amount of the user's requests in the given statuses."""
        stmt = select(func.coalesce(func.sum(WithdrawalRequest.amount), 0)).where(
            WithdrawalRequest.user_id == user_id,
            WithdrawalRequest.status.in_([WithdrawalStatus(s).value for s in statuses]),
        )
        result = await self.session.execute(stmt)
        return to_money(result.scalar())

    async def totals_by_status(self, user_id: UUID) -> dict[str, tuple[int, Decimal]]:
        """Count and total amount per status for one user."""
        stmt = (
            select(
                WithdrawalRequest.status,
                func.count(WithdrawalRequest.id),
                func.coalesce(func.sum(WithdrawalRequest.amount), 0),
            )
            .where(WithdrawalRequest.user_id == user_id)
            .group_by(WithdrawalRequest.status)
        )
        result = await self.session.execute(stmt)
        return {status: (count, to_money(total)) for status, count, total in result.all()}

    async def list_requests(
        self,
        user_id: UUID | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[WithdrawalRequest], int]:
        """Newest first, with the total count for pagination."""
        query = select(WithdrawalRequest)
        if user_id is not None:
            query = query.where(WithdrawalRequest.user_id == user_id)
        if status is not None:
            query = query.where(WithdrawalRequest.status == status)

        count_result = await self.session.execute(select(func.count()).select_from(query.subquery()))
        total = count_result.scalar() or 0

        result = await self.session.execute(
            query.order_by(WithdrawalRequest.created_at.desc()).offset(offset).limit(limit)
        )
        return list(result.scalars().all()), total

    async def references_account(self, payment_account_id: UUID) -> bool:
        return await self.exists(payment_account_id=payment_account_id)
