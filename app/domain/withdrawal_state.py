"""Withdrawal request state machine.

States:
- PENDING: Awaiting admin approval
- ACCOUNT_VALIDATION: Payout account not yet validated by an admin
- APPROVED: Approved, awaiting payout execution
- PAID: Payout executed, the amount is permanently withdrawn
- REJECTED: Refused by an admin, amount released
- CANCELLED: Withdrawn by the host before approval, amount released
"""

from enum import Enum

from app.core.exceptions import InvalidWithdrawalTransition


class WithdrawalStatus(str, Enum):
    PENDING = "PENDING"
    ACCOUNT_VALIDATION = "ACCOUNT_VALIDATION"
    APPROVED = "APPROVED"
    PAID = "PAID"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class WithdrawalType(str, Enum):
    PARTIAL_HALF = "PARTIAL_HALF"
    FULL = "FULL"


WITHDRAWAL_TRANSITIONS = {
    WithdrawalStatus.PENDING: {
        WithdrawalStatus.APPROVED,
        WithdrawalStatus.REJECTED,
        WithdrawalStatus.CANCELLED,
    },
    WithdrawalStatus.ACCOUNT_VALIDATION: {
        WithdrawalStatus.APPROVED,
        WithdrawalStatus.REJECTED,
        WithdrawalStatus.CANCELLED,
    },
    WithdrawalStatus.APPROVED: {WithdrawalStatus.PAID, WithdrawalStatus.REJECTED},
    WithdrawalStatus.PAID: set(),
    WithdrawalStatus.REJECTED: set(),
    WithdrawalStatus.CANCELLED: set(),
}

# Statuses whose amount is subtracted from the available balance
RESERVING_STATUSES = frozenset({
    WithdrawalStatus.PENDING,
    WithdrawalStatus.ACCOUNT_VALIDATION,
    WithdrawalStatus.APPROVED,
    WithdrawalStatus.PAID,
})

# Statuses bounded by total earnings
COMMITTED_STATUSES = frozenset({WithdrawalStatus.APPROVED, WithdrawalStatus.PAID})

HOST_CANCELLABLE_STATUSES = frozenset({
    WithdrawalStatus.PENDING,
    WithdrawalStatus.ACCOUNT_VALIDATION,
})


def assert_withdrawal_transition(current: str, target: str) -> None:
    """Validate withdrawal status transition.

    Args:
        current: Current withdrawal status
        target: Target withdrawal status

    Raises:
        InvalidWithdrawalTransition: If transition is not allowed
    """
    allowed = WITHDRAWAL_TRANSITIONS.get(current, set())
    if target not in allowed:
        raise InvalidWithdrawalTransition(
            f"Invalid withdrawal transition: {current} → {target}"
        )


def initial_status(account_validated: bool) -> WithdrawalStatus:
    """Status a new request starts in."""
    if account_validated:
        return WithdrawalStatus.PENDING
    return WithdrawalStatus.ACCOUNT_VALIDATION
