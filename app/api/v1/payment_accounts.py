"""Payout destination endpoints for hosts."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import Principal, get_container, get_current_host, get_db
from app.schemas.payment_account import (
    PaymentAccountCreate,
    PaymentAccountListResponse,
    PaymentAccountResponse,
    PaymentAccountUpdate,
)
from app.services.container import ServiceContainer

router = APIRouter()


@router.get("", response_model=PaymentAccountListResponse)
async def list_payment_accounts(
    current_user: Annotated[Principal, Depends(get_current_host)],
    db: Annotated[AsyncSession, Depends(get_db)],
    container: Annotated[ServiceContainer, Depends(get_container)],
) -> PaymentAccountListResponse:
    """List the caller's payout destinations, default first."""
    accounts = await container.payment_accounts.list_for_user(db, current_user.user_id)
    return PaymentAccountListResponse(
        accounts=[PaymentAccountResponse.model_validate(a) for a in accounts]
    )


@router.post("", response_model=PaymentAccountResponse, status_code=status.HTTP_201_CREATED)
async def create_payment_account(
    data: PaymentAccountCreate,
    current_user: Annotated[Principal, Depends(get_current_host)],
    db: Annotated[AsyncSession, Depends(get_db)],
    container: Annotated[ServiceContainer, Depends(get_container)],
) -> PaymentAccountResponse:
    """Register a payout destination. The first one becomes the default."""
    account = await container.payment_accounts.create(db, current_user.user_id, data.details)
    await db.commit()
    return PaymentAccountResponse.model_validate(account)


@router.patch("/{account_id}", response_model=PaymentAccountResponse)
async def update_payment_account(
    account_id: UUID,
    data: PaymentAccountUpdate,
    current_user: Annotated[Principal, Depends(get_current_host)],
    db: Annotated[AsyncSession, Depends(get_db)],
    container: Annotated[ServiceContainer, Depends(get_container)],
) -> PaymentAccountResponse:
    """Replace an account's details. The account must be validated again."""
    account = await container.payment_accounts.update(
        db, current_user.user_id, account_id, data.details
    )
    await db.commit()
    return PaymentAccountResponse.model_validate(account)


@router.post("/{account_id}/default", response_model=PaymentAccountResponse)
async def set_default_payment_account(
    account_id: UUID,
    current_user: Annotated[Principal, Depends(get_current_host)],
    db: Annotated[AsyncSession, Depends(get_db)],
    container: Annotated[ServiceContainer, Depends(get_container)],
) -> PaymentAccountResponse:
    """Make an account the default payout destination."""
    account = await container.payment_accounts.set_default(db, current_user.user_id, account_id)
    await db.commit()
    return PaymentAccountResponse.model_validate(account)


@router.delete("/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_payment_account(
    account_id: UUID,
    current_user: Annotated[Principal, Depends(get_current_host)],
    db: Annotated[AsyncSession, Depends(get_db)],
    container: Annotated[ServiceContainer, Depends(get_container)],
) -> Response:
    """Delete an account that no withdrawal request references."""
    await container.payment_accounts.delete(db, current_user.user_id, account_id)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
