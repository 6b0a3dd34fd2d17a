"""Core utilities and security modules."""

from app.core.exceptions import (
    AppException,
    AuthenticationError,
    AuthorizationError,
    BookingNotFoundRecoverable,
    ConcurrentBalanceViolation,
    InsufficientBalance,
    InvalidBookingTransition,
    InvalidPaymentAccountFields,
    InvalidWithdrawalTransition,
    MissingEventMetadata,
    NotFoundError,
    PaymentAccountInUse,
    SignatureInvalid,
    ValidationError,
)
from app.core.security import create_access_token, verify_token
