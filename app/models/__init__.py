"""Database models."""

from app.models.booking import Booking
from app.models.payment_account import PaymentAccount
from app.models.webhook_event import PaymentWebhookEvent
from app.models.withdrawal import WithdrawalRequest

from app.core.immutability import register_immutability_enforcement

register_immutability_enforcement()

__all__ = [
    # Booking
    "Booking",
    # Payouts
    "PaymentAccount",
    "WithdrawalRequest",
    # Provider events
    "PaymentWebhookEvent",
]
