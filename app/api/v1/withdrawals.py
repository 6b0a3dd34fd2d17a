"""Withdrawal endpoints for hosts."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import Principal, get_container, get_current_host, get_db
from app.schemas.withdrawal import (
    BalanceResponse,
    WithdrawalCreate,
    WithdrawalListResponse,
    WithdrawalResponse,
    WithdrawalStatsResponse,
)
from app.services.container import ServiceContainer

router = APIRouter()


@router.get("/balance", response_model=BalanceResponse)
async def get_my_balance(
    current_user: Annotated[Principal, Depends(get_current_host)],
    db: Annotated[AsyncSession, Depends(get_db)],
    container: Annotated[ServiceContainer, Depends(get_container)],
) -> BalanceResponse:
    """Get the caller's earned, pending and available balance."""
    balance = await container.balance.get_balance(db, current_user.user_id)
    return BalanceResponse.model_validate(balance)


@router.get("/stats", response_model=WithdrawalStatsResponse)
async def get_my_withdrawal_stats(
    current_user: Annotated[Principal, Depends(get_current_host)],
    db: Annotated[AsyncSession, Depends(get_db)],
    container: Annotated[ServiceContainer, Depends(get_container)],
) -> WithdrawalStatsResponse:
    """Balance plus count and total per withdrawal status."""
    stats = await container.withdrawals.get_stats(db, current_user.user_id)
    return WithdrawalStatsResponse(
        balance=BalanceResponse.model_validate(stats["balance"]),
        by_status=stats["by_status"],
    )


@router.get("", response_model=WithdrawalListResponse)
async def list_my_withdrawals(
    current_user: Annotated[Principal, Depends(get_current_host)],
    db: Annotated[AsyncSession, Depends(get_db)],
    container: Annotated[ServiceContainer, Depends(get_container)],
    status_filter: str | None = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
) -> WithdrawalListResponse:
    """Get the caller's withdrawal history, newest first."""
    requests, total = await container.withdrawals.list_requests(
        db, user_id=current_user.user_id, status=status_filter, page=page, page_size=page_size
    )
    return WithdrawalListResponse(
        withdrawals=[WithdrawalResponse.model_validate(r) for r in requests],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("", response_model=WithdrawalResponse, status_code=status.HTTP_201_CREATED)
async def create_withdrawal(
    data: WithdrawalCreate,
    current_user: Annotated[Principal, Depends(get_current_host)],
    db: Annotated[AsyncSession, Depends(get_db)],
    container: Annotated[ServiceContainer, Depends(get_container)],
) -> WithdrawalResponse:
    """Request a withdrawal from the available balance."""
    request = await container.withdrawals.create(
        db,
        current_user.user_id,
        withdrawal_type=data.withdrawal_type,
        amount=data.amount,
        payment_account_id=data.payment_account_id,
        notes=data.notes,
    )
    await db.commit()
    return WithdrawalResponse.model_validate(request)


@router.post("/{request_id}/cancel", response_model=WithdrawalResponse)
async def cancel_withdrawal(
    request_id: UUID,
    current_user: Annotated[Principal, Depends(get_current_host)],
    db: Annotated[AsyncSession, Depends(get_db)],
    container: Annotated[ServiceContainer, Depends(get_container)],
) -> WithdrawalResponse:
    """Cancel one of the caller's requests that has not been approved yet."""
    request = await container.withdrawals.cancel(db, current_user.user_id, request_id)
    await db.commit()
    return WithdrawalResponse.model_validate(request)
