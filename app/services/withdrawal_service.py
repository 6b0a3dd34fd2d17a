"""Withdrawal workflow engine.

Every balance-affecting step takes the per-host balance lock and re-reads the
balance inside the same transaction, so concurrent requests cannot together
withdraw more than the host has earned.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.core.exceptions import (
    AppException,
    InsufficientBalance,
    InvalidWithdrawalTransition,
    NotFoundError,
    ValidationError,
)
from app.core.locking import acquire_xact_lock, concurrency_guard, host_balance_lock_key
from app.database import get_db_context, utc_now
from app.domain.payment_details import describe_destination
from app.domain.withdrawal_state import (
    COMMITTED_STATUSES,
    HOST_CANCELLABLE_STATUSES,
    WithdrawalStatus,
    WithdrawalType,
    assert_withdrawal_transition,
    initial_status,
)
from app.models.payment_account import PaymentAccount
from app.models.withdrawal import WithdrawalRequest
from app.repositories.booking import BookingRepository
from app.repositories.payment_account import PaymentAccountRepository
from app.repositories.withdrawal import WithdrawalRepository
from app.services.balance_service import BalanceService, HostBalance
from app.services.booking_payment_service import PendingNotification
from app.services.notification_service import NotificationService
from app.utils.money import ZERO, to_money

logger = logging.getLogger(__name__)
alerts = logging.getLogger("app.alerts")


@dataclass
class BatchItemResult:
    request_id: UUID
    success: bool
    status: str | None = None
    error: str | None = None
    notification: PendingNotification | None = None


def paid_notification(request: WithdrawalRequest) -> PendingNotification:
    """Notice for the host that a payout went out.

    Sent to the e-mail on the payout destination when it has one.
    """
    details = request.payment_details_snapshot or {}
    recipient = details.get("wallet_email") or details.get("card_email")
    return PendingNotification(
        recipient=recipient,
        template_kind=NotificationService.WITHDRAWAL_PAID,
        variables={
            "amount": str(to_money(request.amount)),
            "currency": settings.default_currency,
            "destination": describe_destination(details),
        },
    )


class WithdrawalService:
    """Service for the withdrawal request lifecycle."""

    def __init__(self, balance_service: BalanceService) -> None:
        self.balance_service = balance_service

    # ==================== HOST OPERATIONS ====================

    async def create(
        self,
        db: AsyncSession,
        user_id: UUID,
        withdrawal_type: WithdrawalType | str,
        amount: Decimal | None = None,
        payment_account_id: UUID | None = None,
        notes: str | None = None,
        created_by: UUID | None = None,
    ) -> WithdrawalRequest:
        """Create a withdrawal request against the host's available balance.

        Args:
            db: Database session
            user_id: Host requesting the withdrawal
            withdrawal_type: PARTIAL_HALF or FULL
            amount: Requested amount; defaults to half (PARTIAL_HALF) or all (FULL)
                of the available balance
            payment_account_id: Destination; the user's default account if omitted
            notes: Host notes
            created_by: Admin creating the request on the host's behalf

        Returns:
            WithdrawalRequest: The new request (PENDING or ACCOUNT_VALIDATION)

        Raises:
            InsufficientBalance: If the amount exceeds the available balance
            ValidationError: If the amount is not positive
            NotFoundError: If the payment account does not exist or is not the user's
        """
        withdrawal_type = WithdrawalType(withdrawal_type)
        if amount is not None:
            amount = to_money(amount)
            if amount <= 0:
                raise ValidationError("Withdrawal amount must be positive")

        with concurrency_guard("withdrawal creation"):
            balance = await self.balance_service.get_balance(db, user_id, lock=True)
            account = await self._resolve_account(db, user_id, payment_account_id)
            amount = self._resolve_amount(balance, withdrawal_type, amount)

            request = WithdrawalRequest(
                user_id=user_id,
                amount=amount,
                available_balance_snapshot=balance.available_balance,
                withdrawal_type=withdrawal_type.value,
                payment_account_id=account.id,
                payment_method=account.method,
                payment_details_snapshot=dict(account.details),
                status=initial_status(account.is_validated).value,
                notes=notes,
                created_by=created_by,
            )
            await WithdrawalRepository(db).add(request)

        logger.info(
            f"Withdrawal {request.id} of {amount} created for host {user_id} "
            f"({request.status}, available was {balance.available_balance})"
        )
        return request

    async def cancel(self, db: AsyncSession, user_id: UUID, request_id: UUID) -> WithdrawalRequest:
        """Host withdraws their own request before approval."""
        request = await self._get_locked(db, request_id)
        if request.user_id != user_id:
            raise NotFoundError("Withdrawal request", str(request_id))
        if request.status not in HOST_CANCELLABLE_STATUSES:
            raise InvalidWithdrawalTransition(
                f"Only pending requests can be cancelled, request is {request.status}"
            )

        request.status = WithdrawalStatus.CANCELLED.value
        request.cancelled_at = utc_now()
        await db.flush()
        logger.info(f"Withdrawal {request.id} cancelled by host {user_id}")
        return request

    # ==================== ADMIN OPERATIONS ====================

    async def approve(
        self,
        db: AsyncSession,
        request_id: UUID,
        admin_id: UUID,
        note: str | None = None,
    ) -> WithdrawalRequest:
        """Approve a request.

        Allowed from PENDING, or from ACCOUNT_VALIDATION once the payout
        account has been validated.

        Raises:
            InvalidWithdrawalTransition: If the request cannot be approved
            InsufficientBalance: If approving would exceed the host's earnings
        """
        with concurrency_guard("withdrawal approval"):
            request = await self._get_locked(db, request_id)
            assert_withdrawal_transition(request.status, WithdrawalStatus.APPROVED)

            if request.status == WithdrawalStatus.ACCOUNT_VALIDATION:
                account = await PaymentAccountRepository(db).get_by_id(request.payment_account_id)
                if account is None or not account.is_validated:
                    raise InvalidWithdrawalTransition(
                        "Payment account must be validated before the request can be approved"
                    )

            await self._assert_within_earnings(db, request)

            request.status = WithdrawalStatus.APPROVED.value
            request.processed_by = admin_id
            request.processed_at = utc_now()
            if note is not None:
                request.admin_notes = note
            await db.flush()

        logger.info(f"Withdrawal {request.id} approved by {admin_id}")
        return request

    async def reject(
        self,
        db: AsyncSession,
        request_id: UUID,
        admin_id: UUID,
        note: str | None = None,
    ) -> WithdrawalRequest:
        """Reject a request; its amount is available again immediately."""
        with concurrency_guard("withdrawal rejection"):
            request = await self._get_locked(db, request_id)
            assert_withdrawal_transition(request.status, WithdrawalStatus.REJECTED)

            request.status = WithdrawalStatus.REJECTED.value
            request.processed_by = admin_id
            request.processed_at = utc_now()
            if note is not None:
                request.admin_notes = note
            await db.flush()

        logger.info(f"Withdrawal {request.id} rejected by {admin_id}")
        return request

    async def mark_paid(self, db: AsyncSession, request_id: UUID, admin_id: UUID) -> WithdrawalRequest:
        """Record that an APPROVED request has been paid out."""
        with concurrency_guard("withdrawal payout"):
            request = await self._get_locked(db, request_id)
            assert_withdrawal_transition(request.status, WithdrawalStatus.PAID)
            await self._assert_within_earnings(db, request)

            request.status = WithdrawalStatus.PAID.value
            request.paid_at = utc_now()
            if request.processed_by is None:
                request.processed_by = admin_id
            await db.flush()

        logger.info(f"Withdrawal {request.id} marked paid by {admin_id}")
        return request

    async def mark_paid_batch(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        request_ids: list[UUID],
        admin_id: UUID,
    ) -> list[BatchItemResult]:
        """Mark several requests paid, each in its own transaction.

        A failing item does not stop the batch; every item gets a result.
        """
        results: list[BatchItemResult] = []
        for request_id in request_ids:
            try:
                async with get_db_context(session_factory) as db:
                    request = await self.mark_paid(db, request_id, admin_id)
                    status = request.status
                    notification = paid_notification(request)
            except AppException as exc:
                logger.warning(f"Batch payout: withdrawal {request_id} failed: {exc.detail}")
                results.append(BatchItemResult(request_id, False, error=str(exc.detail)))
            except SQLAlchemyError as exc:
                logger.exception(f"Batch payout: database error on withdrawal {request_id}")
                results.append(BatchItemResult(request_id, False, error=type(exc).__name__))
            else:
                results.append(
                    BatchItemResult(request_id, True, status=status, notification=notification)
                )

        succeeded = sum(1 for r in results if r.success)
        logger.info(f"Batch payout by {admin_id}: {succeeded}/{len(results)} paid")
        return results

    # ==================== QUERIES ====================

    async def get(self, db: AsyncSession, request_id: UUID) -> WithdrawalRequest:
        request = await WithdrawalRepository(db).get_by_id(request_id)
        if request is None:
            raise NotFoundError("Withdrawal request", str(request_id))
        return request

    async def list_requests(
        self,
        db: AsyncSession,
        user_id: UUID | None = None,
        status: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[WithdrawalRequest], int]:
        offset = (page - 1) * page_size
        return await WithdrawalRepository(db).list_requests(
            user_id=user_id, status=status, limit=page_size, offset=offset
        )

    async def get_stats(self, db: AsyncSession, user_id: UUID) -> dict[str, Any]:
        """Balance plus count and total amount per status."""
        balance = await self.balance_service.get_balance(db, user_id)
        totals = await WithdrawalRepository(db).totals_by_status(user_id)
        by_status = {}
        for status in WithdrawalStatus:
            count, total = totals.get(status.value, (0, ZERO))
            by_status[status.value] = {"count": count, "total": total}
        return {"balance": balance, "by_status": by_status}

    # ==================== INTERNALS ====================

    async def _get_locked(self, db: AsyncSession, request_id: UUID) -> WithdrawalRequest:
        repo = WithdrawalRepository(db)
        request = await repo.get_by_id(request_id)
        if request is None:
            raise NotFoundError("Withdrawal request", str(request_id))
        await acquire_xact_lock(db, host_balance_lock_key(request.user_id))
        return await repo.get_by_id(request_id, for_update=True)

    async def _resolve_account(
        self,
        db: AsyncSession,
        user_id: UUID,
        payment_account_id: UUID | None,
    ) -> PaymentAccount:
        repo = PaymentAccountRepository(db)
        if payment_account_id is None:
            account = await repo.get_default(user_id)
            if account is None:
                raise NotFoundError("Default payment account")
            return account

        account = await repo.get_for_user(user_id, payment_account_id)
        if account is None:
            raise NotFoundError("Payment account", str(payment_account_id))
        return account

    def _resolve_amount(
        self,
        balance: HostBalance,
        withdrawal_type: WithdrawalType,
        amount: Decimal | None,
    ) -> Decimal:
        if withdrawal_type == WithdrawalType.PARTIAL_HALF:
            if not balance.can_withdraw_partial:
                raise InsufficientBalance(
                    f"Partial withdrawals need an available balance of at least "
                    f"{self.balance_service.partial_threshold}"
                )
            if amount is None:
                amount = balance.partial_amount
        else:
            if not balance.can_withdraw_full:
                raise InsufficientBalance("No available balance to withdraw")
            if amount is None:
                amount = balance.full_amount

        if amount > balance.available_balance:
            raise InsufficientBalance(
                f"Requested {amount} exceeds available balance {balance.available_balance}"
            )
        return amount

    async def _assert_within_earnings(self, db: AsyncSession, request: WithdrawalRequest) -> None:
        earned = await BookingRepository(db).total_host_earnings(request.user_id)
        committed = await self.balance_service.committed_total(db, request.user_id)
        if request.status not in COMMITTED_STATUSES:
            committed += to_money(request.amount)
        if committed > earned:
            alerts.error(
                f"Withdrawal {request.id} blocked: committed {committed} would exceed "
                f"earnings {earned} for host {request.user_id}"
            )
            raise InsufficientBalance(
                f"Withdrawals for this host would exceed total earnings ({earned})"
            )
