"""Celery background tasks.

This module contains the batch jobs for:
- Withdrawal payouts (bulk mark-paid)
- Stay completion (check-out of finished stays)
"""

import asyncio
import logging
from datetime import UTC, date, datetime
from uuid import UUID

from celery import shared_task

from app.core.exceptions import AppException
from app.database import get_db_context
from app.repositories.booking import BookingRepository
from app.services.container import ServiceContainer

logger = logging.getLogger(__name__)


def run_async(coro):
    """Run async function in sync context."""
    return asyncio.run(coro)


# ==================== PAYOUT TASKS ====================


@shared_task(bind=True, max_retries=3)
def process_withdrawal_payouts(self, request_ids: list[str], admin_id: str):
    """Mark approved withdrawal requests as paid.

    Each request is settled in its own transaction, so one failure does not
    hold back the rest of the batch.
    """
    try:
        results = run_async(
            _process_withdrawal_payouts([UUID(r) for r in request_ids], UUID(admin_id))
        )
    except Exception as exc:
        raise self.retry(exc=exc, countdown=300)

    return {
        "status": "success",
        "succeeded": sum(1 for r in results if r["success"]),
        "results": results,
    }


async def _process_withdrawal_payouts(request_ids: list[UUID], admin_id: UUID) -> list[dict]:
    """Async implementation of the payout batch."""
    container = ServiceContainer.build()
    try:
        return await settle_payouts(container, request_ids, admin_id)
    finally:
        await container.close()


async def settle_payouts(container: ServiceContainer, request_ids: list[UUID], admin_id: UUID) -> list[dict]:
    """Mark each request paid and notify the host of every success."""
    results = await container.withdrawals.mark_paid_batch(
        container.session_factory, request_ids, admin_id
    )
    for result in results:
        if result.notification is not None:
            await container.notifier.notify(
                result.notification.recipient,
                result.notification.template_kind,
                result.notification.variables,
            )
    return [
        {
            "request_id": str(r.request_id),
            "success": r.success,
            "status": r.status,
            "error": r.error,
        }
        for r in results
    ]


# ==================== STAY COMPLETION TASKS ====================


@shared_task(bind=True, max_retries=3)
def complete_finished_stays(self):
    """Check out confirmed, paid bookings whose stay has ended.

    Runs daily at the configured stay completion hour.
    """
    try:
        completed = run_async(_complete_finished_stays())
        return {"status": "success", "completed": completed}
    except Exception as exc:
        raise self.retry(exc=exc, countdown=300)


async def _complete_finished_stays() -> int:
    """Async implementation of stay completion."""
    container = ServiceContainer.build()
    try:
        return await check_out_finished_stays(container, datetime.now(UTC).date())
    finally:
        await container.close()


async def check_out_finished_stays(container: ServiceContainer, today: date) -> int:
    """Check out every finished stay, one transaction per booking.

    Returns:
        int: Number of bookings checked out
    """
    async with container.session_factory() as db:
        bookings = await BookingRepository(db).list_finished_stays(today)
        booking_ids = [b.id for b in bookings]

    completed = 0
    for booking_id in booking_ids:
        try:
            async with get_db_context(container.session_factory) as db:
                await container.booking_payments.check_out(db, booking_id)
        except AppException as exc:
            # Moved on by a webhook since the listing query
            logger.info(f"Booking {booking_id} not checked out: {exc.detail}")
        else:
            completed += 1

    logger.info(f"Stay completion: {completed}/{len(booking_ids)} bookings checked out")
    return completed
