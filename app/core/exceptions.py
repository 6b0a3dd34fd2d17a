"""Custom application exceptions."""

from typing import Any

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base application exception."""

    def __init__(
        self,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: str = "An unexpected error occurred",
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class ValidationError(AppException):
    """Validation error exception."""

    def __init__(self, detail: str = "Validation failed", errors: list[dict[str, Any]] | None = None) -> None:
        self.errors = errors
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)


class NotFoundError(AppException):
    """Resource not found exception."""

    def __init__(self, resource: str = "Resource", identifier: str | None = None) -> None:
        detail = f"{resource} not found"
        if identifier:
            detail = f"{resource} with ID '{identifier}' not found"
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class AuthenticationError(AppException):
    """Authentication failed exception."""

    def __init__(self, detail: str = "Authentication failed") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(AppException):
    """Authorization denied exception."""

    def __init__(self, detail: str = "You don't have permission to access this resource") -> None:
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


# ============ Webhook ingestion ============


class SignatureInvalid(AppException):
    """Webhook signature could not be verified."""

    def __init__(self, detail: str = "Invalid webhook signature") -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class MissingEventMetadata(AppException):
    """Event lacks the booking metadata needed to act on it."""

    def __init__(self, detail: str = "Missing booking metadata", errors: list[dict[str, Any]] | None = None) -> None:
        self.errors = errors
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class BookingNotFoundRecoverable(AppException):
    """No booking for a payment reference yet; a later event may supply it."""

    def __init__(self, payment_ref: str) -> None:
        self.payment_ref = payment_ref
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No booking for payment reference '{payment_ref}'",
        )


class InvalidBookingTransition(ValidationError):
    """Booking state change not allowed from the current state."""


# ============ Balance and withdrawals ============


class InsufficientBalance(AppException):
    """Insufficient balance for withdrawal."""

    def __init__(self, detail: str = "Insufficient balance for this operation") -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class ConcurrentBalanceViolation(AppException):
    """The database refused a concurrent balance-affecting transaction."""

    def __init__(self, detail: str = "Balance changed concurrently, please retry") -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class InvalidWithdrawalTransition(ValidationError):
    """Withdrawal workflow step not allowed from the current status."""


# ============ Payment accounts ============


class InvalidPaymentAccountFields(ValidationError):
    """Payment account details do not match the method's field set."""

    def __init__(self, detail: str = "Invalid payment account details", errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(detail=detail, errors=errors)


class PaymentAccountInUse(AppException):
    """Payment account is referenced by withdrawal requests."""

    def __init__(self, detail: str = "Payment account is referenced by withdrawal requests") -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class ExternalServiceError(AppException):
    """External service error."""

    def __init__(self, service: str, detail: str | None = None) -> None:
        message = f"External service '{service}' is unavailable"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=message)
