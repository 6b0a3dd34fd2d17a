"""Admin panel endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import Principal, get_container, get_current_admin, get_db
from app.schemas.payment_account import PaymentAccountResponse
from app.schemas.withdrawal import (
    AdminWithdrawalCreate,
    BalanceResponse,
    BookingCheckOutResponse,
    WithdrawalBatchItem,
    WithdrawalBatchRequest,
    WithdrawalBatchResponse,
    WithdrawalDecision,
    WithdrawalListResponse,
    WithdrawalResponse,
)
from app.services.container import ServiceContainer
from app.services.withdrawal_service import paid_notification

router = APIRouter()


# ============ WITHDRAWALS ============


@router.get("/withdrawals", response_model=WithdrawalListResponse)
async def list_withdrawals(
    admin: Annotated[Principal, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    container: Annotated[ServiceContainer, Depends(get_container)],
    status_filter: str | None = Query(default=None, alias="status"),
    host_id: UUID | None = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=200),
) -> WithdrawalListResponse:
    """List withdrawal requests across hosts, newest first."""
    requests, total = await container.withdrawals.list_requests(
        db, user_id=host_id, status=status_filter, page=page, page_size=page_size
    )
    return WithdrawalListResponse(
        withdrawals=[WithdrawalResponse.model_validate(r) for r in requests],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post(
    "/withdrawals/for-host",
    response_model=WithdrawalResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_withdrawal_for_host(
    data: AdminWithdrawalCreate,
    admin: Annotated[Principal, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    container: Annotated[ServiceContainer, Depends(get_container)],
) -> WithdrawalResponse:
    """Create a withdrawal on a host's behalf. The same balance rules apply."""
    request = await container.withdrawals.create(
        db,
        data.host_id,
        withdrawal_type=data.withdrawal_type,
        amount=data.amount,
        payment_account_id=data.payment_account_id,
        notes=data.notes,
        created_by=admin.user_id,
    )
    await db.commit()
    return WithdrawalResponse.model_validate(request)


@router.post("/withdrawals/mark-paid", response_model=WithdrawalBatchResponse)
async def mark_withdrawals_paid(
    data: WithdrawalBatchRequest,
    background_tasks: BackgroundTasks,
    admin: Annotated[Principal, Depends(get_current_admin)],
    container: Annotated[ServiceContainer, Depends(get_container)],
) -> WithdrawalBatchResponse:
    """Mark several approved requests paid. Each one succeeds or fails on its own."""
    results = await container.withdrawals.mark_paid_batch(
        container.session_factory, data.request_ids, admin.user_id
    )

    for result in results:
        if result.notification is not None:
            background_tasks.add_task(
                container.notifier.notify,
                result.notification.recipient,
                result.notification.template_kind,
                result.notification.variables,
            )

    succeeded = sum(1 for r in results if r.success)
    return WithdrawalBatchResponse(
        results=[WithdrawalBatchItem.model_validate(r) for r in results],
        succeeded=succeeded,
        failed=len(results) - succeeded,
    )


@router.post("/withdrawals/{request_id}/approve", response_model=WithdrawalResponse)
async def approve_withdrawal(
    request_id: UUID,
    admin: Annotated[Principal, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    container: Annotated[ServiceContainer, Depends(get_container)],
    data: WithdrawalDecision | None = None,
) -> WithdrawalResponse:
    """Approve a pending request."""
    request = await container.withdrawals.approve(
        db, request_id, admin.user_id, note=data.note if data else None
    )
    await db.commit()
    return WithdrawalResponse.model_validate(request)


@router.post("/withdrawals/{request_id}/reject", response_model=WithdrawalResponse)
async def reject_withdrawal(
    request_id: UUID,
    admin: Annotated[Principal, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    container: Annotated[ServiceContainer, Depends(get_container)],
    data: WithdrawalDecision | None = None,
) -> WithdrawalResponse:
    """Reject a request and release its amount."""
    request = await container.withdrawals.reject(
        db, request_id, admin.user_id, note=data.note if data else None
    )
    await db.commit()
    return WithdrawalResponse.model_validate(request)


@router.post("/withdrawals/{request_id}/mark-paid", response_model=WithdrawalResponse)
async def mark_withdrawal_paid(
    request_id: UUID,
    background_tasks: BackgroundTasks,
    admin: Annotated[Principal, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    container: Annotated[ServiceContainer, Depends(get_container)],
) -> WithdrawalResponse:
    """Record that an approved request has been paid out."""
    request = await container.withdrawals.mark_paid(db, request_id, admin.user_id)
    await db.commit()

    notification = paid_notification(request)
    background_tasks.add_task(
        container.notifier.notify,
        notification.recipient,
        notification.template_kind,
        notification.variables,
    )
    return WithdrawalResponse.model_validate(request)


# ============ PAYMENT ACCOUNTS ============


@router.post("/payment-accounts/{account_id}/validate", response_model=PaymentAccountResponse)
async def validate_payment_account(
    account_id: UUID,
    admin: Annotated[Principal, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    container: Annotated[ServiceContainer, Depends(get_container)],
) -> PaymentAccountResponse:
    """Mark a payout destination as validated."""
    account = await container.payment_accounts.validate(db, account_id, admin.user_id)
    await db.commit()
    return PaymentAccountResponse.model_validate(account)


# ============ HOSTS ============


@router.get("/hosts/{host_id}/balance", response_model=BalanceResponse)
async def get_host_balance(
    host_id: UUID,
    admin: Annotated[Principal, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    container: Annotated[ServiceContainer, Depends(get_container)],
) -> BalanceResponse:
    """Get any host's balance."""
    balance = await container.balance.get_balance(db, host_id)
    return BalanceResponse.model_validate(balance)


# ============ BOOKINGS ============


@router.post("/bookings/{booking_id}/check-out", response_model=BookingCheckOutResponse)
async def check_out_booking(
    booking_id: UUID,
    admin: Annotated[Principal, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    container: Annotated[ServiceContainer, Depends(get_container)],
) -> BookingCheckOutResponse:
    """Close a finished stay. The booking must be paid."""
    booking = await container.booking_payments.check_out(db, booking_id)
    await db.commit()
    return BookingCheckOutResponse.model_validate(booking)
