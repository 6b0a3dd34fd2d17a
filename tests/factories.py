"""Fakes and payload builders shared by the test suite."""

import hashlib
import hmac
import json
import time
import uuid
from datetime import date, timedelta
from typing import Any

from app.core.security import create_access_token
from app.gateways.stripe_gateway import StripeGateway
from app.services.notification_service import NotificationService

WEBHOOK_SECRET = "whsec_test_secret"

VALID_IBAN = "DE89370400440532013000"
VALID_CARD = "4111111111111111"
VALID_MOBILE = "+261 34 12 345 67"


class FakeProvider(StripeGateway):
    """Real Stripe signature checks, canned checkout session lookups."""

    def __init__(self) -> None:
        super().__init__(secret_key="sk_test_dummy", webhook_secret=WEBHOOK_SECRET, tolerance=300)
        self.sessions: dict[str, dict[str, Any]] = {}
        self.lookups: list[str] = []

    async def find_session_by_payment_ref(self, external_payment_ref: str) -> dict[str, Any] | None:
        self.lookups.append(external_payment_ref)
        return self.sessions.get(external_payment_ref)


class FakeNotifier(NotificationService):
    """Records notifications instead of e-mailing them."""

    def __init__(self) -> None:
        super().__init__()
        self.sent: list[tuple[str | None, str, dict[str, Any]]] = []

    async def notify(self, recipient, template_kind, variables=None) -> bool:
        self.sent.append((recipient, template_kind, variables or {}))
        return True


async def no_sleep(delay: float) -> None:
    return None


def auth_headers(user_id: uuid.UUID, role: str) -> dict[str, str]:
    token = create_access_token({"sub": str(user_id), "role": role})
    return {"Authorization": f"Bearer {token}"}


def booking_metadata(host_id: uuid.UUID, price: str = "200.00", **overrides) -> dict[str, str]:
    """Checkout metadata as the storefront sends it (all strings)."""
    check_in = date.today() + timedelta(days=10)
    metadata = {
        "productId": str(uuid.uuid4()),
        "userId": str(uuid.uuid4()),
        "hostId": str(host_id),
        "arrivingDate": check_in.isoformat(),
        "leavingDate": (check_in + timedelta(days=3)).isoformat(),
        "peopleNumber": "2",
        "price": price,
        "commissionRate": "10",
        "userEmail": "guest@example.com",
    }
    metadata.update(overrides)
    return metadata


def checkout_session(ref: str, metadata: dict[str, Any], status: str = "complete") -> dict[str, Any]:
    return {
        "id": f"cs_{ref}",
        "object": "checkout.session",
        "status": status,
        "payment_intent": ref,
        "currency": "eur",
        "customer_details": {"email": "guest@example.com"},
        "metadata": metadata,
    }


def make_event(event_type: str, obj: dict[str, Any], event_id: str | None = None) -> dict[str, Any]:
    return {
        "id": event_id or f"evt_{uuid.uuid4().hex}",
        "object": "event",
        "type": event_type,
        "created": int(time.time()),
        "livemode": False,
        "data": {"object": obj},
    }


def checkout_completed_event(ref: str, metadata: dict[str, Any], **kwargs) -> dict[str, Any]:
    return make_event("checkout.session.completed", checkout_session(ref, metadata), **kwargs)


def payment_intent_event(event_type: str, ref: str, metadata: dict[str, Any] | None = None, **kwargs):
    return make_event(
        event_type,
        {"id": ref, "object": "payment_intent", "currency": "eur", "metadata": metadata or {}},
        **kwargs,
    )


def dispute_event(event_type: str, ref: str, status: str = "needs_response", **kwargs):
    return make_event(
        event_type,
        {
            "id": f"dp_{uuid.uuid4().hex[:12]}",
            "object": "dispute",
            "status": status,
            "reason": "fraudulent",
            "charge": f"ch_{ref}",
            "payment_intent": ref,
        },
        **kwargs,
    )


def refund_event(ref: str | None, **kwargs):
    return make_event(
        "charge.refunded",
        {
            "id": f"ch_{uuid.uuid4().hex[:12]}",
            "object": "charge",
            "payment_intent": ref,
            "amount": 20000,
            "amount_refunded": 20000,
            "refunded": True,
        },
        **kwargs,
    )


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """``Stripe-Signature`` header value for a payload."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload.decode('utf-8')}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def signed_request(event: dict[str, Any]) -> tuple[bytes, dict[str, str]]:
    body = json.dumps(event).encode("utf-8")
    return body, {"Stripe-Signature": sign_payload(body), "Content-Type": "application/json"}


def new_ref() -> str:
    return f"pi_{uuid.uuid4().hex[:24]}"

