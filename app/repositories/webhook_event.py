"""Provider event log repository."""

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.idempotency import FINAL_EVENT_OUTCOMES
from app.database import utc_now
from app.models.webhook_event import PaymentWebhookEvent
from app.repositories.base import BaseRepository


class WebhookEventRepository(BaseRepository[PaymentWebhookEvent]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(PaymentWebhookEvent, session)

    async def get(self, event_id: str) -> PaymentWebhookEvent | None:
        return await self.session.get(PaymentWebhookEvent, event_id)

    async def find_completed(self, event_id: str, idempotency_key: str | None) -> PaymentWebhookEvent | None:
        """An earlier delivery of this event, or of the same type for the same payment, that reached a final outcome."""
        event = await self.get(event_id)
        if event is not None and event.outcome in FINAL_EVENT_OUTCOMES:
            return event
        if idempotency_key is None:
            return None

        stmt = (
            select(PaymentWebhookEvent)
            .where(
                PaymentWebhookEvent.idempotency_key == idempotency_key,
                PaymentWebhookEvent.outcome == "processed",
            )
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def record(
        self,
        event_id: str,
        event_type: str,
        payload: dict[str, Any],
        outcome: str,
        external_payment_ref: str | None = None,
        idempotency_key: str | None = None,
        detail: str | None = None,
    ) -> PaymentWebhookEvent:
        """Insert the event, or update the outcome of an earlier delivery."""
        event = await self.get(event_id)
        if event is None:
            event = PaymentWebhookEvent(
                event_id=event_id,
                event_type=event_type,
                payload=payload,
                external_payment_ref=external_payment_ref,
                idempotency_key=idempotency_key,
                attempts=1,
            )
            self.session.add(event)
        else:
            event.attempts = event.attempts + 1
            event.idempotency_key = idempotency_key
            if external_payment_ref:
                event.external_payment_ref = external_payment_ref

        event.outcome = outcome
        event.detail = detail
        event.processed_at = utc_now()
        await self.session.flush()
        return event
