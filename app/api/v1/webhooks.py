"""Webhook endpoint for the payment provider."""

from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, Header, Request, status

from app.api.deps import get_container
from app.core.exceptions import MissingEventMetadata
from app.schemas.webhook import WebhookAck, parse_event
from app.services.container import ServiceContainer

router = APIRouter()


@router.post("/payments", response_model=WebhookAck, status_code=status.HTTP_200_OK)
async def payment_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    container: Annotated[ServiceContainer, Depends(get_container)],
    stripe_signature: str | None = Header(None, alias="Stripe-Signature"),
) -> WebhookAck:
    """Handle payment provider events.

    The signature is checked against the raw body before anything is parsed.
    Recognized events move booking state; anything else is recorded and
    acknowledged. Notifications go out after the transaction has committed.
    """
    payload = await request.body()
    raw_event = container.provider.verify_webhook(payload, stripe_signature)

    try:
        event = parse_event(raw_event)
    except MissingEventMetadata as exc:
        await container.webhooks.record_rejected(raw_event, exc.detail)
        raise

    result = await container.webhooks.dispatch(event, raw_event)

    for notification in result.notifications:
        background_tasks.add_task(
            container.notifier.notify,
            notification.recipient,
            notification.template_kind,
            notification.variables,
        )

    return WebhookAck(outcome=result.outcome)

