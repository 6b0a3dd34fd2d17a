"""Immutability enforcement for financial fields using SQLAlchemy events."""

import logging
from datetime import UTC, datetime

from sqlalchemy import event, inspect

from app.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

_registered = False


class ImmutabilityViolationError(ValidationError):
    """Raised when attempting to modify immutable financial fields."""

    def __init__(self, model_name: str, field: str, record_id: str):
        self.model_name = model_name
        self.field = field
        self.record_id = record_id
        super().__init__(
            f"Immutability violation: Cannot change {model_name}.{field} on record {record_id}. "
            "This field is fixed once set."
        )


def _log_immutability_violation(model_name: str, field: str, record_id: str) -> None:
    """Log immutability violation for audit purposes."""
    logger.error(
        f"IMMUTABILITY_VIOLATION: Attempted to change {model_name}.{field} "
        f"record_id={record_id} at {datetime.now(UTC).isoformat()}"
    )


def _changed_fields(target, fields: tuple[str, ...], allow_first_set: bool) -> list[str]:
    state = inspect(target)
    changed = []
    for name in fields:
        history = state.attrs[name].history
        if not history.has_changes():
            continue
        previous = history.deleted[0] if history.deleted else None
        if allow_first_set and previous is None:
            continue
        if history.added and history.added[0] == previous:
            continue
        changed.append(name)
    return changed


def register_immutability_enforcement() -> None:
    """Register SQLAlchemy event listeners for immutability enforcement.

    Called once when ``app.models`` is imported.
    """
    global _registered
    if _registered:
        return

    from app.models.booking import Booking
    from app.models.withdrawal import WithdrawalRequest

    # ============ Booking: external_payment_ref is write-once ============

    @event.listens_for(Booking, "before_update")
    def prevent_payment_ref_change(mapper, connection, target):
        """Prevent changing a booking's payment reference once set."""
        for field in _changed_fields(target, ("external_payment_ref",), allow_first_set=True):
            _log_immutability_violation("Booking", field, str(target.id))
            raise ImmutabilityViolationError("Booking", field, str(target.id))

    # ============ WithdrawalRequest: amounts and snapshot frozen at insert ============

    @event.listens_for(WithdrawalRequest, "before_update")
    def prevent_withdrawal_snapshot_change(mapper, connection, target):
        """Prevent changes to a withdrawal's amount and snapshots."""
        frozen = ("amount", "available_balance_snapshot", "payment_details_snapshot")
        for field in _changed_fields(target, frozen, allow_first_set=False):
            _log_immutability_violation("WithdrawalRequest", field, str(target.id))
            raise ImmutabilityViolationError("WithdrawalRequest", field, str(target.id))

    _registered = True
    logger.info("Immutability enforcement registered for financial fields")
