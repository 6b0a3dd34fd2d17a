"""Idempotency keys for provider events."""

import hashlib
import json
from typing import Any
from uuid import UUID

# Outcomes after which a redelivered event is acknowledged without re-running it.
# "deferred" is absent: a deferred event is retried on redelivery.
FINAL_EVENT_OUTCOMES = frozenset({"processed", "ignored", "rejected"})


def generate_idempotency_key(
    operation: str,
    entity_id: UUID | str,
    params: dict[str, Any] | None = None,
) -> str:
    """Generate a deterministic idempotency key.

    Args:
        operation: Operation name (e.g. the provider event type)
        entity_id: Primary entity ID (e.g. the external payment reference)
        params: Additional parameters to include in key

    Returns:
        SHA256 hash of operation + entity + params
    """
    key_data = {
        "operation": operation,
        "entity_id": str(entity_id),
        "params": params or {},
    }
    key_str = json.dumps(key_data, sort_keys=True)
    return hashlib.sha256(key_str.encode()).hexdigest()


def event_idempotency_key(event_type: str, external_payment_ref: str | None) -> str | None:
    """Key identifying "this event type for this payment", or None if unknown."""
    if not external_payment_ref:
        return None
    return generate_idempotency_key(event_type, external_payment_ref)
