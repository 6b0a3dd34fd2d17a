"""Payment account registry: payout destinations per user."""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, PaymentAccountInUse
from app.core.locking import acquire_xact_lock, payment_accounts_lock_key
from app.database import utc_now
from app.domain.payment_details import details_to_json, parse_payment_details
from app.models.payment_account import PaymentAccount
from app.repositories.payment_account import PaymentAccountRepository
from app.repositories.withdrawal import WithdrawalRepository

logger = logging.getLogger(__name__)


class PaymentAccountService:
    """Service for registering, validating and choosing payout destinations."""

    async def create(self, db: AsyncSession, user_id: UUID, details: dict[str, Any]) -> PaymentAccount:
        """Register a payout destination.

        The user's first account becomes their default.

        Args:
            db: Database session
            user_id: Owner
            details: Method-keyed details (``method`` plus that method's fields)

        Returns:
            PaymentAccount: Created account

        Raises:
            InvalidPaymentAccountFields: If the fields do not fit the method
        """
        parsed = parse_payment_details(details)

        await acquire_xact_lock(db, payment_accounts_lock_key(user_id))
        repo = PaymentAccountRepository(db)
        has_default = await repo.get_default(user_id) is not None

        account = PaymentAccount(
            user_id=user_id,
            method=parsed.method,
            account_holder_name=parsed.holder_name,
            details=details_to_json(parsed),
            is_default=not has_default,
            is_validated=False,
        )
        await repo.add(account)
        logger.info(f"Payment account {account.id} ({account.method}) created for user {user_id}")
        return account

    async def update(
        self,
        db: AsyncSession,
        user_id: UUID,
        account_id: UUID,
        details: dict[str, Any],
    ) -> PaymentAccount:
        """Replace an account's details. The account needs validating again.

        Withdrawal requests keep their own snapshot of the old details.
        """
        parsed = parse_payment_details(details)
        account = await self._get_owned(db, user_id, account_id)

        account.method = parsed.method
        account.account_holder_name = parsed.holder_name
        account.details = details_to_json(parsed)
        account.is_validated = False
        account.validated_by = None
        account.validated_at = None
        await db.flush()
        return account

    async def set_default(self, db: AsyncSession, user_id: UUID, account_id: UUID) -> PaymentAccount:
        """Make ``account_id`` the user's only default account."""
        await acquire_xact_lock(db, payment_accounts_lock_key(user_id))
        repo = PaymentAccountRepository(db)
        account = await self._get_owned(db, user_id, account_id)
        if account.is_default:
            return account

        await repo.clear_default(user_id)
        account.is_default = True
        await db.flush()
        logger.info(f"Payment account {account.id} is now default for user {user_id}")
        return account

    async def validate(self, db: AsyncSession, account_id: UUID, admin_id: UUID) -> PaymentAccount:
        """Mark an account validated. Repeated calls keep the first validation."""
        account = await PaymentAccountRepository(db).get_by_id(account_id, for_update=True)
        if account is None:
            raise NotFoundError("Payment account", str(account_id))
        if account.is_validated:
            return account

        account.is_validated = True
        account.validated_by = admin_id
        account.validated_at = utc_now()
        await db.flush()
        logger.info(f"Payment account {account.id} validated by {admin_id}")
        return account

    async def delete(self, db: AsyncSession, user_id: UUID, account_id: UUID) -> None:
        """Delete an unreferenced account, promoting the newest remaining one to default.

        Raises:
            PaymentAccountInUse: If any withdrawal request references the account
        """
        await acquire_xact_lock(db, payment_accounts_lock_key(user_id))
        repo = PaymentAccountRepository(db)
        account = await self._get_owned(db, user_id, account_id)

        if await WithdrawalRepository(db).references_account(account.id):
            raise PaymentAccountInUse()

        was_default = account.is_default
        await repo.delete(account)

        if was_default:
            remaining = await repo.list_for_user(user_id)
            if remaining:
                remaining[0].is_default = True
                await db.flush()
                logger.info(f"Payment account {remaining[0].id} promoted to default for user {user_id}")

    async def list_for_user(self, db: AsyncSession, user_id: UUID) -> list[PaymentAccount]:
        return await PaymentAccountRepository(db).list_for_user(user_id)

    async def _get_owned(self, db: AsyncSession, user_id: UUID, account_id: UUID) -> PaymentAccount:
        account = await PaymentAccountRepository(db).get_for_user(user_id, account_id)
        if account is None:
            raise NotFoundError("Payment account", str(account_id))
        return account
