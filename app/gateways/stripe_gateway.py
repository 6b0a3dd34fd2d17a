"""Stripe payment provider client."""

import asyncio
import json
import logging
from typing import Any

import stripe

from app.config import settings
from app.core.exceptions import ExternalServiceError, SignatureInvalid
from app.gateways.base import PaymentProviderClient

logger = logging.getLogger(__name__)


class StripeGateway(PaymentProviderClient):
    """Stripe implementation of the provider client."""

    def __init__(
        self,
        secret_key: str | None = None,
        webhook_secret: str | None = None,
        tolerance: int | None = None,
    ):
        self.secret_key = secret_key or settings.stripe_secret_key
        self.webhook_secret = webhook_secret or settings.stripe_webhook_secret
        self.tolerance = tolerance if tolerance is not None else settings.stripe_webhook_tolerance

    def verify_webhook(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        """Verify the ``Stripe-Signature`` header, then parse the body."""
        if not self.webhook_secret:
            raise ExternalServiceError("stripe", "webhook secret is not configured")
        if not signature:
            raise SignatureInvalid("Missing signature header")

        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8"),
                signature,
                self.webhook_secret,
                tolerance=self.tolerance,
            )
        except (stripe.SignatureVerificationError, UnicodeDecodeError) as e:
            logger.warning(f"Webhook signature rejected: {e}")
            raise SignatureInvalid()

        try:
            event = json.loads(payload)
        except ValueError:
            raise SignatureInvalid("Invalid payload")
        if not isinstance(event, dict):
            raise SignatureInvalid("Invalid payload")
        return event

    async def find_session_by_payment_ref(self, external_payment_ref: str) -> dict[str, Any] | None:
        """Look up the checkout session for a payment intent (or a session id)."""
        if not self.secret_key:
            raise ExternalServiceError("stripe", "secret key is not configured")

        try:
            if external_payment_ref.startswith("cs_"):
                session = await asyncio.to_thread(
                    stripe.checkout.Session.retrieve,
                    external_payment_ref,
                    api_key=self.secret_key,
                )
                return session.to_dict()

            sessions = await asyncio.to_thread(
                stripe.checkout.Session.list,
                payment_intent=external_payment_ref,
                limit=1,
                api_key=self.secret_key,
            )
        except stripe.InvalidRequestError as e:
            logger.info(f"No checkout session for {external_payment_ref}: {e}")
            return None
        except stripe.StripeError as e:
            raise ExternalServiceError("stripe", str(e))

        if not sessions.data:
            return None
        return sessions.data[0].to_dict()
