"""Notification Service for guest and host e-mails.

Sends transactional e-mail through SendGrid. Sending is fire-and-forget:
failures are logged and reported as False, never raised, so a notification
can never block or undo a state change.
"""

import logging
from typing import Any

import httpx

from app.config import settings

logger = logging.getLogger(__name__)

SENDGRID_SEND_URL = "https://api.sendgrid.com/v3/mail/send"


class NotificationService:
    """Service for sending e-mail notifications."""

    # Template kinds
    BOOKING_CONFIRMED = "booking_confirmed"
    PAYMENT_FAILED = "payment_failed"
    BOOKING_DISPUTED = "booking_disputed"
    BOOKING_REFUNDED = "booking_refunded"
    WITHDRAWAL_PAID = "withdrawal_paid"

    TEMPLATES: dict[str, tuple[str, str]] = {
        BOOKING_CONFIRMED: (
            "Your booking is confirmed",
            "Your stay from {check_in} to {check_out} is confirmed. "
            "Amount paid: {amount} {currency}.",
        ),
        PAYMENT_FAILED: (
            "Your payment did not go through",
            "We could not process the payment for your stay from {check_in} "
            "to {check_out}. The booking has been cancelled.",
        ),
        BOOKING_DISPUTED: (
            "Your booking payment is disputed",
            "A dispute was opened on the payment for your stay from {check_in} "
            "to {check_out}. The booking is on hold until it is resolved.",
        ),
        BOOKING_REFUNDED: (
            "Your booking has been refunded",
            "The payment for your stay from {check_in} to {check_out} has been refunded.",
        ),
        WITHDRAWAL_PAID: (
            "Your withdrawal has been paid",
            "Your withdrawal of {amount} {currency} has been sent to {destination}.",
        ),
    }

    def __init__(self) -> None:
        """Initialize notification service."""
        self._http_client: httpx.AsyncClient | None = None

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Lazy-load HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=30.0)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()

    async def notify(
        self,
        recipient: str | None,
        template_kind: str,
        variables: dict[str, Any] | None = None,
    ) -> bool:
        """Render a template and e-mail it.

        Args:
            recipient: E-mail address; nothing is sent when None
            template_kind: One of the template kind constants
            variables: Values substituted into the template

        Returns:
            bool: True if sent successfully
        """
        if not recipient:
            logger.info(f"Notification {template_kind} skipped: no recipient")
            return False

        template = self.TEMPLATES.get(template_kind)
        if template is None:
            logger.error(f"Unknown notification template: {template_kind}")
            return False

        subject, body = template
        try:
            text = body.format(**(variables or {}))
        except KeyError as e:
            logger.error(f"Notification {template_kind} missing variable {e}")
            return False

        sent = await self.send_email(
            to_email=recipient,
            subject=subject,
            html_content=f"<p>{text}</p>",
            text_content=text,
        )
        if not sent:
            logger.warning(f"Notification {template_kind} to {recipient} was not delivered")
        return sent

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: str | None = None,
    ) -> bool:
        """Send an email via SendGrid.

        Args:
            to_email: Recipient email
            subject: Email subject
            html_content: HTML body
            text_content: Plain text body

        Returns:
            bool: True if sent successfully
        """
        if not settings.sendgrid_api_key:
            logger.debug(f"SendGrid not configured, e-mail '{subject}' to {to_email} not sent")
            return False

        headers = {
            "Authorization": f"Bearer {settings.sendgrid_api_key}",
            "Content-Type": "application/json",
        }
        payload: dict[str, Any] = {
            "personalizations": [{"to": [{"email": to_email}]}],
            "from": {
                "email": settings.email_from_address,
                "name": settings.email_from_name,
            },
            "subject": subject,
            "content": [{"type": "text/html", "value": html_content}],
        }
        if text_content:
            payload["content"].insert(0, {"type": "text/plain", "value": text_content})

        try:
            response = await self.http_client.post(SENDGRID_SEND_URL, headers=headers, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"SendGrid request failed: {e}")
            return False
        return response.status_code in (200, 202)
