"""Tests for the payment account registry."""

import uuid
from datetime import timedelta
from decimal import Decimal

import pytest

from app.core.exceptions import InvalidPaymentAccountFields, NotFoundError, PaymentAccountInUse
from app.repositories.payment_account import PaymentAccountRepository
from tests.factories import VALID_IBAN, VALID_MOBILE

BASE_URL = "/api/v1/payment-accounts"

BANK = {"method": "BANK_TRANSFER", "account_holder_name": "Jane Host", "iban": VALID_IBAN}
MOBILE = {"method": "MOBILE_MONEY", "account_holder_name": "Jane Host", "mobile_number": VALID_MOBILE}


async def defaults_for(container, user_id) -> list[uuid.UUID]:
    async with container.session_factory() as session:
        accounts = await PaymentAccountRepository(session).list_for_user(user_id)
    return [a.id for a in accounts if a.is_default]


class TestPaymentAccountService:
    @pytest.mark.asyncio
    async def test_first_account_becomes_default(self, container, host_id):
        async with container.session_factory() as session:
            first = await container.payment_accounts.create(session, host_id, BANK)
            second = await container.payment_accounts.create(session, host_id, MOBILE)
            await session.commit()

        assert first.is_default is True
        assert second.is_default is False
        assert first.is_validated is False
        assert first.details["iban"] == VALID_IBAN

    @pytest.mark.asyncio
    async def test_set_default_leaves_exactly_one(self, container, host_id):
        async with container.session_factory() as session:
            first = await container.payment_accounts.create(session, host_id, BANK)
            second = await container.payment_accounts.create(session, host_id, MOBILE)
            await session.commit()

        async with container.session_factory() as session:
            await container.payment_accounts.set_default(session, host_id, second.id)
            await session.commit()

        assert await defaults_for(container, host_id) == [second.id]

        # Setting it again is a no-op
        async with container.session_factory() as session:
            await container.payment_accounts.set_default(session, host_id, second.id)
            await session.commit()
        assert await defaults_for(container, host_id) == [second.id]
        assert first.id != second.id

    @pytest.mark.asyncio
    async def test_cannot_touch_another_users_account(self, container, host_id):
        async with container.session_factory() as session:
            account = await container.payment_accounts.create(session, host_id, BANK)
            await session.commit()

        async with container.session_factory() as session:
            with pytest.raises(NotFoundError):
                await container.payment_accounts.set_default(session, uuid.uuid4(), account.id)

    @pytest.mark.asyncio
    async def test_validate_is_idempotent(self, container, host_id):
        first_admin, second_admin = uuid.uuid4(), uuid.uuid4()
        async with container.session_factory() as session:
            account = await container.payment_accounts.create(session, host_id, BANK)
            await container.payment_accounts.validate(session, account.id, first_admin)
            validated_at = account.validated_at
            again = await container.payment_accounts.validate(session, account.id, second_admin)
            await session.commit()

        assert again.is_validated is True
        assert again.validated_by == first_admin
        assert again.validated_at == validated_at

    @pytest.mark.asyncio
    async def test_timestamps_load_as_utc(self, container, host_id):
        async with container.session_factory() as session:
            account = await container.payment_accounts.create(session, host_id, BANK)
            await container.payment_accounts.validate(session, account.id, uuid.uuid4())
            validated_at = account.validated_at
            await session.commit()

        async with container.session_factory() as session:
            reloaded = await PaymentAccountRepository(session).get_by_id(account.id)

        assert reloaded.validated_at.tzinfo is not None
        assert reloaded.validated_at.utcoffset() == timedelta(0)
        assert reloaded.validated_at == validated_at

    @pytest.mark.asyncio
    async def test_update_requires_validation_again(self, container, host_id):
        async with container.session_factory() as session:
            account = await container.payment_accounts.create(session, host_id, BANK)
            await container.payment_accounts.validate(session, account.id, uuid.uuid4())
            updated = await container.payment_accounts.update(session, host_id, account.id, MOBILE)
            await session.commit()

        assert updated.method == "MOBILE_MONEY"
        assert updated.is_validated is False
        assert updated.validated_by is None
        assert "iban" not in updated.details

    @pytest.mark.asyncio
    async def test_invalid_details_are_rejected(self, container, host_id):
        async with container.session_factory() as session:
            with pytest.raises(InvalidPaymentAccountFields):
                await container.payment_accounts.create(
                    session, host_id, {**BANK, "mobile_number": VALID_MOBILE}
                )

    @pytest.mark.asyncio
    async def test_delete_promotes_remaining_account(self, container, host_id):
        async with container.session_factory() as session:
            first = await container.payment_accounts.create(session, host_id, BANK)
            second = await container.payment_accounts.create(session, host_id, MOBILE)
            await session.commit()

        async with container.session_factory() as session:
            await container.payment_accounts.delete(session, host_id, first.id)
            await session.commit()

        assert await defaults_for(container, host_id) == [second.id]

    @pytest.mark.asyncio
    async def test_delete_refused_while_referenced(self, container, make_paid_booking, make_account, host_id):
        await make_paid_booking(host_id)
        account = await make_account(host_id)
        async with container.session_factory() as session:
            await container.withdrawals.create(session, host_id, "FULL", amount=Decimal("10"))
            await session.commit()

        async with container.session_factory() as session:
            with pytest.raises(PaymentAccountInUse):
                await container.payment_accounts.delete(session, host_id, account.id)


class TestPaymentAccountEndpoints:
    @pytest.mark.asyncio
    async def test_create_and_list(self, client, host_headers, host_id):
        created = await client.post(BASE_URL, json={"details": BANK}, headers=host_headers)

        assert created.status_code == 201
        body = created.json()
        assert body["user_id"] == str(host_id)
        assert body["is_default"] is True
        assert body["destination"].endswith("3000")
        assert "details" not in body

        listed = await client.get(BASE_URL, headers=host_headers)
        assert [a["id"] for a in listed.json()["accounts"]] == [body["id"]]

    @pytest.mark.asyncio
    async def test_field_errors_are_reported(self, client, host_headers):
        response = await client.post(
            BASE_URL,
            json={"details": {"method": "BANK_TRANSFER", "account_holder_name": "Jane", "iban": "DE00"}},
            headers=host_headers,
        )

        assert response.status_code == 422
        assert any("iban" in err["loc"] for err in response.json()["errors"])

    @pytest.mark.asyncio
    async def test_set_default_and_delete(self, client, host_headers):
        first = (await client.post(BASE_URL, json={"details": BANK}, headers=host_headers)).json()
        second = (await client.post(BASE_URL, json={"details": MOBILE}, headers=host_headers)).json()

        response = await client.post(f"{BASE_URL}/{second['id']}/default", headers=host_headers)
        assert response.status_code == 200
        assert response.json()["is_default"] is True

        deleted = await client.delete(f"{BASE_URL}/{first['id']}", headers=host_headers)
        assert deleted.status_code == 204

        listed = (await client.get(BASE_URL, headers=host_headers)).json()["accounts"]
        assert [(a["id"], a["is_default"]) for a in listed] == [(second["id"], True)]

    @pytest.mark.asyncio
    async def test_patch_resets_validation(self, client, host_headers, admin_headers):
        account = (await client.post(BASE_URL, json={"details": BANK}, headers=host_headers)).json()
        validated = await client.post(
            f"/api/v1/admin/payment-accounts/{account['id']}/validate", headers=admin_headers
        )
        assert validated.json()["is_validated"] is True

        response = await client.patch(
            f"{BASE_URL}/{account['id']}", json={"details": MOBILE}, headers=host_headers
        )

        assert response.status_code == 200
        assert response.json()["method"] == "MOBILE_MONEY"
        assert response.json()["is_validated"] is False

    @pytest.mark.asyncio
    async def test_delete_in_use_is_a_conflict(self, client, make_paid_booking, host_id, host_headers):
        await make_paid_booking(host_id)
        account = (await client.post(BASE_URL, json={"details": BANK}, headers=host_headers)).json()
        created = await client.post(
            "/api/v1/withdrawals", json={"withdrawal_type": "FULL"}, headers=host_headers
        )
        assert created.status_code == 201

        response = await client.delete(f"{BASE_URL}/{account['id']}", headers=host_headers)

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_only_admins_validate(self, client, host_headers):
        account = (await client.post(BASE_URL, json={"details": BANK}, headers=host_headers)).json()

        response = await client.post(
            f"/api/v1/admin/payment-accounts/{account['id']}/validate", headers=host_headers
        )

        assert response.status_code == 403
