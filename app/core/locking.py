"""Transaction-scoped advisory locks and concurrency conflict detection.

Lock keys used across the service:

- ``booking:<external_payment_ref>``: webhook processing for one booking
- ``host-balance:<host_id>``: balance read + withdrawal insert/transition
- ``payment-accounts:<user_id>``: default-account flips
"""

import hashlib
import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConcurrentBalanceViolation

logger = logging.getLogger(__name__)

# serialization_failure, deadlock_detected, lock_not_available
CONFLICT_SQLSTATES = {"40001", "40P01", "55P03"}


def booking_lock_key(external_payment_ref: str) -> str:
    return f"booking:{external_payment_ref}"


def host_balance_lock_key(host_id) -> str:
    return f"host-balance:{host_id}"


def payment_accounts_lock_key(user_id) -> str:
    return f"payment-accounts:{user_id}"


def lock_id_for(key: str) -> int:
    """Derive a signed 64-bit advisory lock id from a string key."""
    digest = hashlib.sha256(key.encode()).digest()
    return int.from_bytes(digest[:8], "big", signed=True)


async def acquire_xact_lock(db: AsyncSession, key: str) -> None:
    """Take an exclusive lock held until the current transaction ends.

    On PostgreSQL this is ``pg_advisory_xact_lock``. SQLite sessions open every
    transaction with ``BEGIN IMMEDIATE`` (see ``app.database``), which already
    serializes writers, so nothing is emitted there.
    """
    if db.get_bind().dialect.name != "postgresql":
        return

    lock_id = lock_id_for(key)
    await db.execute(text("SELECT pg_advisory_xact_lock(:lock_id)"), {"lock_id": lock_id})
    logger.debug(f"Advisory lock acquired key={key} lock_id={lock_id}")


def is_concurrency_conflict(exc: DBAPIError) -> bool:
    """Whether a database error is a serialization failure or lock timeout."""
    orig = getattr(exc, "orig", None)
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in CONFLICT_SQLSTATES:
        return True
    return "database is locked" in str(orig).lower()


@contextmanager
def concurrency_guard(operation: str) -> Iterator[None]:
    """Translate concurrency conflicts raised inside the block.

    Raises:
        ConcurrentBalanceViolation: If the database refused the transaction
    """
    try:
        yield
    except DBAPIError as exc:
        if not is_concurrency_conflict(exc):
            raise
        logger.warning(f"Concurrency conflict during {operation}: {exc.orig}")
        raise ConcurrentBalanceViolation() from exc
