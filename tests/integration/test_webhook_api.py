"""HTTP tests for the payment provider webhook."""

import json

import pytest

from app.repositories.booking import BookingRepository
from app.repositories.webhook_event import WebhookEventRepository
from app.services.notification_service import NotificationService
from tests.factories import (
    booking_metadata,
    checkout_completed_event,
    make_event,
    new_ref,
    sign_payload,
    signed_request,
)

WEBHOOK_URL = "/webhooks/payments"


class TestWebhookEndpoint:
    @pytest.mark.asyncio
    async def test_checkout_completed_creates_booking_and_notifies(
        self, client, container, notifier, host_id
    ):
        ref = new_ref()
        body, headers = signed_request(checkout_completed_event(ref, booking_metadata(host_id)))

        response = await client.post(WEBHOOK_URL, content=body, headers=headers)

        assert response.status_code == 200
        assert response.json() == {"received": True, "outcome": "processed"}
        async with container.session_factory() as session:
            booking = await BookingRepository(session).get_by_payment_ref(ref)
        assert booking.payment_state == "PAID"

        # Sent as a background task once the response is done
        assert [(r, kind) for r, kind, _ in notifier.sent] == [
            ("guest@example.com", NotificationService.BOOKING_CONFIRMED)
        ]

    @pytest.mark.asyncio
    async def test_bad_signature_changes_nothing(self, client, container, host_id):
        ref = new_ref()
        body = json.dumps(checkout_completed_event(ref, booking_metadata(host_id))).encode()

        response = await client.post(
            WEBHOOK_URL,
            content=body,
            headers={"Stripe-Signature": sign_payload(body, secret="whsec_wrong")},
        )

        assert response.status_code == 400
        async with container.session_factory() as session:
            assert await BookingRepository(session).get_by_payment_ref(ref) is None

    @pytest.mark.asyncio
    async def test_missing_signature(self, client):
        body = json.dumps(make_event("customer.created", {"id": "cus_1"})).encode()
        response = await client.post(WEBHOOK_URL, content=body)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_event_is_acknowledged(self, client):
        body, headers = signed_request(make_event("customer.created", {"id": "cus_1"}))

        response = await client.post(WEBHOOK_URL, content=body, headers=headers)

        assert response.status_code == 200
        assert response.json()["outcome"] == "ignored"

    @pytest.mark.asyncio
    async def test_unknown_event_without_id_is_acknowledged(self, client, container):
        body, headers = signed_request({"type": "customer.created", "data": {"object": {}}})

        response = await client.post(WEBHOOK_URL, content=body, headers=headers)

        assert response.status_code == 200
        assert response.json()["outcome"] == "ignored"
        async with container.session_factory() as session:
            assert await WebhookEventRepository(session).count() == 0

    @pytest.mark.asyncio
    async def test_unknown_event_with_odd_fields_is_acknowledged(self, client):
        event = {"id": "evt_odd", "type": "customer.updated", "created": "yesterday", "data": []}
        body, headers = signed_request(event)

        response = await client.post(WEBHOOK_URL, content=body, headers=headers)

        assert response.status_code == 200
        assert response.json()["outcome"] == "ignored"

    @pytest.mark.asyncio
    async def test_missing_metadata_returns_400_and_is_recorded(self, client, container, host_id):
        metadata = booking_metadata(host_id)
        del metadata["productId"]
        event = checkout_completed_event(new_ref(), metadata)
        body, headers = signed_request(event)

        response = await client.post(WEBHOOK_URL, content=body, headers=headers)

        assert response.status_code == 400
        assert response.json()["errors"]
        async with container.session_factory() as session:
            recorded = await WebhookEventRepository(session).get(event["id"])
        assert recorded.outcome == "rejected"

    @pytest.mark.asyncio
    async def test_malformed_known_event_is_recorded(self, client, container):
        event = {"id": "evt_malformed", "type": "charge.refunded", "data": {"object": {}}}
        body, headers = signed_request(event)

        response = await client.post(WEBHOOK_URL, content=body, headers=headers)

        assert response.status_code == 400
        async with container.session_factory() as session:
            recorded = await WebhookEventRepository(session).get("evt_malformed")
        assert recorded.outcome == "rejected"

    @pytest.mark.asyncio
    async def test_redelivery_is_acknowledged_once(self, client, container, notifier, host_id):
        body, headers = signed_request(checkout_completed_event(new_ref(), booking_metadata(host_id)))

        first = await client.post(WEBHOOK_URL, content=body, headers=headers)
        second = await client.post(WEBHOOK_URL, content=body, headers=headers)

        assert first.status_code == second.status_code == 200
        assert second.json()["outcome"] == "processed"
        assert len(notifier.sent) == 1
        async with container.session_factory() as session:
            assert await BookingRepository(session).count() == 1

    @pytest.mark.asyncio
    async def test_deferred_event_is_acknowledged(self, client):
        body, headers = signed_request(
            make_event("payment_intent.succeeded", {"id": new_ref(), "metadata": {}})
        )

        response = await client.post(WEBHOOK_URL, content=body, headers=headers)

        assert response.status_code == 200
        assert response.json()["outcome"] == "deferred"
