"""Per-session data access for the settlement models."""

from app.repositories.booking import BookingRepository
from app.repositories.payment_account import PaymentAccountRepository
from app.repositories.webhook_event import WebhookEventRepository
from app.repositories.withdrawal import WithdrawalRepository

__all__ = [
    "BookingRepository",
    "PaymentAccountRepository",
    "WebhookEventRepository",
    "WithdrawalRepository",
]
