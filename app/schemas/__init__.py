"""Pydantic schemas for request/response validation."""

from app.schemas.payment_account import (
    PaymentAccountCreate,
    PaymentAccountListResponse,
    PaymentAccountResponse,
    PaymentAccountUpdate,
)
from app.schemas.webhook import BookingMetadata, WebhookAck, parse_event
from app.schemas.withdrawal import (
    AdminWithdrawalCreate,
    BalanceResponse,
    BookingCheckOutResponse,
    WithdrawalBatchRequest,
    WithdrawalBatchResponse,
    WithdrawalCreate,
    WithdrawalDecision,
    WithdrawalListResponse,
    WithdrawalResponse,
    WithdrawalStatsResponse,
)
