"""Withdrawal and balance schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.domain.withdrawal_state import WithdrawalType


class BalanceResponse(BaseModel):
    """Schema for a host's balance."""

    model_config = ConfigDict(from_attributes=True)

    host_id: UUID
    total_earned: Decimal
    total_withdrawn: Decimal
    pending_withdrawals: Decimal
    available_balance: Decimal
    can_withdraw_partial: bool
    can_withdraw_full: bool
    partial_amount: Decimal
    full_amount: Decimal


class WithdrawalCreate(BaseModel):
    """Schema for requesting a withdrawal."""

    withdrawal_type: WithdrawalType
    amount: Decimal | None = Field(default=None, max_digits=12, decimal_places=2)
    payment_account_id: UUID | None = None
    notes: str | None = Field(default=None, max_length=1000)


class AdminWithdrawalCreate(WithdrawalCreate):
    """Schema for an admin creating a withdrawal on a host's behalf."""

    host_id: UUID


class WithdrawalDecision(BaseModel):
    note: str | None = Field(default=None, max_length=1000)


class WithdrawalBatchRequest(BaseModel):
    request_ids: list[UUID] = Field(..., min_length=1, max_length=500)


class WithdrawalResponse(BaseModel):
    """Schema for withdrawal request response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    amount: Decimal
    available_balance_snapshot: Decimal
    withdrawal_type: str
    payment_account_id: UUID
    payment_method: str
    payment_details_snapshot: dict[str, Any]
    status: str
    notes: str | None
    admin_notes: str | None
    created_by: UUID | None
    processed_by: UUID | None
    processed_at: datetime | None
    paid_at: datetime | None
    cancelled_at: datetime | None
    created_at: datetime


class WithdrawalListResponse(BaseModel):
    withdrawals: list[WithdrawalResponse]
    total: int
    page: int
    page_size: int


class WithdrawalBatchItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    request_id: UUID
    success: bool
    status: str | None = None
    error: str | None = None


class WithdrawalBatchResponse(BaseModel):
    results: list[WithdrawalBatchItem]
    succeeded: int
    failed: int


class StatusTotal(BaseModel):
    count: int
    total: Decimal


class WithdrawalStatsResponse(BaseModel):
    balance: BalanceResponse
    by_status: dict[str, StatusTotal]


class BookingCheckOutResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    lifecycle_state: str
    payment_state: str
    checked_out_at: datetime | None
