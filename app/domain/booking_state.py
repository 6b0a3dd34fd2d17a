"""Booking state machine.

A booking carries two coupled states: its lifecycle (CREATED, CONFIRMED,
CANCELLED, CHECKED_OUT) and its payment sub-state (UNPAID, PAID, DISPUTED,
REFUNDED). Provider events move both at once; a move is only applied when both
halves are legal. Re-applying the current state is a no-op.
"""

from enum import Enum

from app.core.exceptions import InvalidBookingTransition


class LifecycleState(str, Enum):
    CREATED = "CREATED"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    CHECKED_OUT = "CHECKED_OUT"


class PaymentState(str, Enum):
    UNPAID = "UNPAID"
    PAID = "PAID"
    DISPUTED = "DISPUTED"
    REFUNDED = "REFUNDED"


LIFECYCLE_TRANSITIONS = {
    LifecycleState.CREATED: {LifecycleState.CONFIRMED, LifecycleState.CANCELLED},
    LifecycleState.CONFIRMED: {LifecycleState.CANCELLED, LifecycleState.CHECKED_OUT},
    # payment retried successfully, or dispute won
    LifecycleState.CANCELLED: {LifecycleState.CONFIRMED},
    # post-stay dispute or refund
    LifecycleState.CHECKED_OUT: {LifecycleState.CANCELLED},
}

PAYMENT_TRANSITIONS = {
    PaymentState.UNPAID: {PaymentState.PAID},
    PaymentState.PAID: {PaymentState.DISPUTED, PaymentState.REFUNDED},
    PaymentState.DISPUTED: {PaymentState.PAID, PaymentState.UNPAID, PaymentState.REFUNDED},
    PaymentState.REFUNDED: set(),
}


def assert_booking_transition(
    current_lifecycle: str,
    current_payment: str,
    target_lifecycle: str,
    target_payment: str,
) -> bool:
    """Validate a combined booking state change.

    Args:
        current_lifecycle: Current lifecycle state
        current_payment: Current payment state
        target_lifecycle: Target lifecycle state
        target_payment: Target payment state

    Returns:
        bool: True if the booking changes, False if it is already there

    Raises:
        InvalidBookingTransition: If either half of the move is not allowed
    """
    if current_lifecycle == target_lifecycle and current_payment == target_payment:
        return False

    lifecycle_ok = current_lifecycle == target_lifecycle or (
        target_lifecycle in LIFECYCLE_TRANSITIONS.get(current_lifecycle, set())
    )
    payment_ok = current_payment == target_payment or (
        target_payment in PAYMENT_TRANSITIONS.get(current_payment, set())
    )
    if not (lifecycle_ok and payment_ok):
        raise InvalidBookingTransition(
            f"Invalid booking transition: {current_lifecycle}/{current_payment} → "
            f"{target_lifecycle}/{target_payment}"
        )
    return True
