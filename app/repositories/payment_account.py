"""Payment account repository."""

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.payment_account import PaymentAccount
from app.repositories.base import BaseRepository


class PaymentAccountRepository(BaseRepository[PaymentAccount]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(PaymentAccount, session)

    async def get_for_user(self, user_id: UUID, account_id: UUID) -> PaymentAccount | None:
        stmt = select(PaymentAccount).where(
            PaymentAccount.id == account_id,
            PaymentAccount.user_id == user_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_default(self, user_id: UUID) -> PaymentAccount | None:
        stmt = select(PaymentAccount).where(
            PaymentAccount.user_id == user_id,
            PaymentAccount.is_default.is_(True),
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: UUID) -> list[PaymentAccount]:
        """Default first, then newest first."""
        stmt = (
            select(PaymentAccount)
            .where(PaymentAccount.user_id == user_id)
            .order_by(PaymentAccount.is_default.desc(), PaymentAccount.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def clear_default(self, user_id: UUID) -> None:
        """Unset the user's default flag; flushed before a new default is set."""
        await self.session.execute(
            update(PaymentAccount)
            .where(PaymentAccount.user_id == user_id, PaymentAccount.is_default.is_(True))
            .values(is_default=False)
            .execution_options(synchronize_session="fetch")
        )
