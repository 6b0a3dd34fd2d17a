"""Routes verified provider events to their handler and records the outcome.

Outcomes:
- processed: the handler ran and its effects are committed
- ignored: stale/out-of-order or irrelevant event, acknowledged
- deferred: booking not available yet, acknowledged, retried on redelivery
- rejected: unusable metadata, kept for manual review, answered with 400
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import (
    BookingNotFoundRecoverable,
    InvalidBookingTransition,
    MissingEventMetadata,
)
from app.core.idempotency import event_idempotency_key
from app.repositories.webhook_event import WebhookEventRepository
from app.schemas.webhook import (
    ChargeRefunded,
    CheckoutSessionCompleted,
    DisputeClosed,
    DisputeCreated,
    PaymentIntentCaptured,
    PaymentIntentCreated,
    PaymentIntentFailed,
    PaymentIntentSucceeded,
    ProviderEvent,
)
from app.services.booking_payment_service import BookingPaymentService, PendingNotification

logger = logging.getLogger(__name__)
alerts = logging.getLogger("app.alerts")


@dataclass
class DispatchResult:
    outcome: str
    duplicate: bool = False
    notifications: list[PendingNotification] = field(default_factory=list)


class WebhookDispatcher:
    """Maps each event model to exactly one booking payment handler."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        booking_payments: BookingPaymentService,
    ) -> None:
        self._session_factory = session_factory
        self._handlers = {
            PaymentIntentCreated: booking_payments.handle_payment_created,
            CheckoutSessionCompleted: booking_payments.handle_checkout_completed,
            PaymentIntentSucceeded: booking_payments.handle_payment_succeeded,
            PaymentIntentCaptured: booking_payments.handle_payment_captured,
            PaymentIntentFailed: booking_payments.handle_payment_failed,
            DisputeCreated: booking_payments.handle_dispute_created,
            DisputeClosed: booking_payments.handle_dispute_closed,
            ChargeRefunded: booking_payments.handle_refunded,
        }

    async def dispatch(self, event: ProviderEvent, payload: dict[str, Any]) -> DispatchResult:
        """Process one verified event.

        Args:
            event: Parsed event
            payload: Raw event body, stored with the outcome

        Returns:
            DispatchResult: Outcome and the notifications to send after commit

        Raises:
            MissingEventMetadata: If the event cannot be acted on (recorded as rejected)
        """
        if event.id is None:
            # Nothing to key the event log on
            logger.info(f"Ignoring {event.type} event without an id")
            return DispatchResult("ignored")

        ref = event.payment_ref
        key = event_idempotency_key(event.type, ref)

        async with self._session_factory() as db:
            previous = await WebhookEventRepository(db).find_completed(event.id, key)
            previous_outcome = previous.outcome if previous else None
            previous_detail = previous.detail if previous else None

        if previous_outcome is not None:
            logger.info(f"Duplicate event {event.id} ({event.type}), previous outcome {previous_outcome}")
            if previous_outcome == "rejected":
                raise MissingEventMetadata(previous_detail or "Event was rejected")
            return DispatchResult(previous_outcome, duplicate=True)

        handler = self._handlers.get(type(event))
        if handler is None:
            logger.info(f"Ignoring unhandled event type {event.type} ({event.id})")
            await self._record(event.id, event.type, payload, "ignored", ref, None, "Unhandled event type")
            return DispatchResult("ignored")

        async with self._session_factory() as db:
            try:
                result = await handler(db, event)
                await WebhookEventRepository(db).record(
                    event.id,
                    event.type,
                    payload,
                    result.outcome,
                    external_payment_ref=ref,
                    idempotency_key=key if result.outcome == "processed" else None,
                    detail=result.detail,
                )
                await db.commit()
            except InvalidBookingTransition as exc:
                await db.rollback()
                alerts.error(f"Stale or out-of-order event {event.id} ({event.type}) for {ref}: {exc.detail}")
                await self._record_in(db, event.id, event.type, payload, "ignored", ref, exc.detail)
                return DispatchResult("ignored")
            except BookingNotFoundRecoverable as exc:
                await db.rollback()
                logger.warning(f"Event {event.id} ({event.type}) deferred: {exc.detail}")
                await self._record_in(db, event.id, event.type, payload, "deferred", ref, exc.detail)
                return DispatchResult("deferred")
            except MissingEventMetadata as exc:
                await db.rollback()
                alerts.error(f"Event {event.id} ({event.type}) rejected: {exc.detail}")
                await self._record_in(db, event.id, event.type, payload, "rejected", ref, exc.detail)
                raise

        return DispatchResult(result.outcome, notifications=result.notifications)

    async def record_rejected(self, payload: dict[str, Any], detail: str) -> None:
        """Keep a malformed but correctly signed event for manual review."""
        event_id = payload.get("id")
        if not isinstance(event_id, str) or not event_id:
            alerts.error(f"Rejected event without id: {detail}")
            return
        alerts.error(f"Event {event_id} rejected: {detail}")
        await self._record(event_id, str(payload.get("type") or "unknown"), payload, "rejected", None, None, detail)

    async def _record(
        self,
        event_id: str,
        event_type: str,
        payload: dict[str, Any],
        outcome: str,
        ref: str | None,
        key: str | None,
        detail: str | None,
    ) -> None:
        async with self._session_factory() as db:
            await WebhookEventRepository(db).record(
                event_id, event_type, payload, outcome,
                external_payment_ref=ref, idempotency_key=key, detail=detail,
            )
            await db.commit()

    async def _record_in(
        self,
        db: AsyncSession,
        event_id: str,
        event_type: str,
        payload: dict[str, Any],
        outcome: str,
        ref: str | None,
        detail: str | None,
    ) -> None:
        await WebhookEventRepository(db).record(
            event_id, event_type, payload, outcome, external_payment_ref=ref, detail=detail
        )
        await db.commit()
