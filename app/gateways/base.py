"""Payment provider client interface.

Adapters only talk to the provider. Business logic should NOT live in adapters.
"""

from abc import ABC, abstractmethod
from typing import Any


class PaymentProviderClient(ABC):
    """Abstract base class for payment provider clients."""

    @abstractmethod
    def verify_webhook(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        """Verify webhook signature and parse payload.

        Args:
            payload: Raw request body
            signature: Webhook signature header

        Returns:
            Parsed event dict

        Raises:
            SignatureInvalid: If the signature does not match the body
        """

    @abstractmethod
    async def find_session_by_payment_ref(self, external_payment_ref: str) -> dict[str, Any] | None:
        """Find the checkout session that produced a payment.

        Args:
            external_payment_ref: Payment intent id (or session id)

        Returns:
            Checkout session dict including its metadata, or None if not found

        Raises:
            ExternalServiceError: If the provider cannot be reached
        """
