"""Tests for the withdrawal workflow."""

import uuid
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import update

from app.core.exceptions import InsufficientBalance, InvalidWithdrawalTransition, NotFoundError
from app.core.immutability import ImmutabilityViolationError
from app.models.booking import Booking
from app.repositories.withdrawal import WithdrawalRepository
from app.services.notification_service import NotificationService
from tests.factories import VALID_IBAN

BASE_URL = "/api/v1/withdrawals"
ADMIN_URL = "/api/v1/admin/withdrawals"

WALLET = {
    "method": "DIGITAL_WALLET",
    "account_holder_name": "Jane Host",
    "wallet_email": "jane@wallet.example",
}


@pytest_asyncio.fixture
async def funded_host(make_paid_booking, make_account, host_id):
    """Host with 180.00 earned and a validated default bank account."""
    await make_paid_booking(host_id)
    return await make_account(host_id)


async def create_request(container, host_id, amount: str = "50", withdrawal_type: str = "FULL", **kwargs):
    async with container.session_factory() as session:
        request = await container.withdrawals.create(
            session, host_id, withdrawal_type, amount=Decimal(amount), **kwargs
        )
        await session.commit()
    return request


class TestCreateWithdrawal:
    @pytest.mark.asyncio
    async def test_snapshots_balance_and_account(self, container, funded_host, host_id):
        request = await create_request(container, host_id, amount="100", withdrawal_type="PARTIAL_HALF")

        assert request.status == "PENDING"
        assert request.amount == Decimal("100.00")
        assert request.available_balance_snapshot == Decimal("180.00")
        assert request.payment_account_id == funded_host.id
        assert request.payment_method == "BANK_TRANSFER"
        assert request.payment_details_snapshot["iban"] == VALID_IBAN

    @pytest.mark.asyncio
    async def test_default_amounts(self, container, funded_host, host_id):
        async with container.session_factory() as session:
            half = await container.withdrawals.create(session, host_id, "PARTIAL_HALF")
            rest = await container.withdrawals.create(session, host_id, "FULL")
            await session.commit()

        assert half.amount == Decimal("90.00")
        assert rest.amount == Decimal("90.00")

    @pytest.mark.asyncio
    async def test_more_than_available_is_refused(self, container, funded_host, host_id):
        await create_request(container, host_id, amount="150")

        async with container.session_factory() as session:
            with pytest.raises(InsufficientBalance):
                await container.withdrawals.create(session, host_id, "FULL", amount=Decimal("31"))

    @pytest.mark.asyncio
    async def test_exact_balance_is_allowed_one_cent_more_is_not(self, container, funded_host, host_id):
        async with container.session_factory() as session:
            with pytest.raises(InsufficientBalance):
                await container.withdrawals.create(session, host_id, "FULL", amount=Decimal("180.01"))

        request = await create_request(container, host_id, amount="180.00")
        assert request.amount == Decimal("180.00")

    @pytest.mark.asyncio
    async def test_nothing_to_withdraw(self, container, make_account, host_id):
        await make_account(host_id)

        async with container.session_factory() as session:
            with pytest.raises(InsufficientBalance):
                await container.withdrawals.create(session, host_id, "FULL")

    @pytest.mark.asyncio
    async def test_unvalidated_account_waits_for_validation(self, container, make_paid_booking, make_account, host_id, admin_id):
        await make_paid_booking(host_id)
        account = await make_account(host_id, validated=False)

        request = await create_request(container, host_id)
        assert request.status == "ACCOUNT_VALIDATION"

        async with container.session_factory() as session:
            with pytest.raises(InvalidWithdrawalTransition):
                await container.withdrawals.approve(session, request.id, admin_id)

        async with container.session_factory() as session:
            await container.payment_accounts.validate(session, account.id, admin_id)
            approved = await container.withdrawals.approve(session, request.id, admin_id)
            await session.commit()
        assert approved.status == "APPROVED"

    @pytest.mark.asyncio
    async def test_account_must_belong_to_host(self, container, funded_host, make_account):
        stranger = uuid.uuid4()
        await make_account(stranger)

        async with container.session_factory() as session:
            with pytest.raises(NotFoundError):
                await container.withdrawals.create(
                    session, stranger, "FULL", amount=Decimal("10"), payment_account_id=funded_host.id
                )


class TestWithdrawalLifecycle:
    @pytest.mark.asyncio
    async def test_approve_then_mark_paid(self, container, funded_host, host_id, admin_id):
        request = await create_request(container, host_id)

        async with container.session_factory() as session:
            approved = await container.withdrawals.approve(session, request.id, admin_id, note="Checked")
            await session.commit()
        assert approved.status == "APPROVED"
        assert approved.processed_by == admin_id
        assert approved.admin_notes == "Checked"

        async with container.session_factory() as session:
            paid = await container.withdrawals.mark_paid(session, request.id, admin_id)
            await session.commit()
        assert paid.status == "PAID"
        assert paid.paid_at is not None

    @pytest.mark.asyncio
    async def test_pending_cannot_be_marked_paid(self, container, funded_host, host_id, admin_id):
        request = await create_request(container, host_id)

        async with container.session_factory() as session:
            with pytest.raises(InvalidWithdrawalTransition):
                await container.withdrawals.mark_paid(session, request.id, admin_id)

    @pytest.mark.asyncio
    async def test_terminal_requests_stay_terminal(self, container, funded_host, host_id, admin_id):
        request = await create_request(container, host_id)
        async with container.session_factory() as session:
            await container.withdrawals.reject(session, request.id, admin_id)
            await session.commit()

        async with container.session_factory() as session:
            with pytest.raises(InvalidWithdrawalTransition):
                await container.withdrawals.approve(session, request.id, admin_id)

    @pytest.mark.asyncio
    async def test_host_cancels_only_before_approval(self, container, funded_host, host_id, admin_id):
        pending = await create_request(container, host_id)
        approved = await create_request(container, host_id)
        async with container.session_factory() as session:
            await container.withdrawals.approve(session, approved.id, admin_id)
            await session.commit()

        async with container.session_factory() as session:
            cancelled = await container.withdrawals.cancel(session, host_id, pending.id)
            await session.commit()
        assert cancelled.status == "CANCELLED"
        assert cancelled.cancelled_at is not None

        async with container.session_factory() as session:
            with pytest.raises(InvalidWithdrawalTransition):
                await container.withdrawals.cancel(session, host_id, approved.id)

    @pytest.mark.asyncio
    async def test_host_cannot_cancel_someone_elses_request(self, container, funded_host, host_id):
        request = await create_request(container, host_id)

        async with container.session_factory() as session:
            with pytest.raises(NotFoundError):
                await container.withdrawals.cancel(session, uuid.uuid4(), request.id)

    @pytest.mark.asyncio
    async def test_approval_blocked_when_earnings_shrink(self, container, funded_host, host_id, admin_id):
        request = await create_request(container, host_id, amount="150")

        # The paid booking is refunded after the request was made
        async with container.session_factory() as session:
            await session.execute(
                update(Booking).where(Booking.host_id == host_id).values(payment_state="REFUNDED")
            )
            await session.commit()

        async with container.session_factory() as session:
            with pytest.raises(InsufficientBalance):
                await container.withdrawals.approve(session, request.id, admin_id)

    @pytest.mark.asyncio
    async def test_account_changes_do_not_touch_snapshot(self, container, funded_host, host_id):
        request = await create_request(container, host_id)

        async with container.session_factory() as session:
            await container.payment_accounts.update(session, host_id, funded_host.id, WALLET)
            await session.commit()

        async with container.session_factory() as session:
            reloaded = await WithdrawalRepository(session).get_by_id(request.id)
        assert reloaded.payment_method == "BANK_TRANSFER"
        assert reloaded.payment_details_snapshot["iban"] == VALID_IBAN

    @pytest.mark.asyncio
    async def test_amount_is_frozen(self, container, funded_host, host_id):
        request = await create_request(container, host_id)

        async with container.session_factory() as session:
            row = await WithdrawalRepository(session).get_by_id(request.id)
            row.amount = Decimal("1.00")
            with pytest.raises(ImmutabilityViolationError):
                await session.flush()

    @pytest.mark.asyncio
    async def test_stats_group_by_status(self, container, funded_host, host_id, admin_id):
        first = await create_request(container, host_id, amount="20")
        await create_request(container, host_id, amount="30")
        async with container.session_factory() as session:
            await container.withdrawals.reject(session, first.id, admin_id)
            await session.commit()

        async with container.session_factory() as session:
            stats = await container.withdrawals.get_stats(session, host_id)

        assert stats["by_status"]["PENDING"] == {"count": 1, "total": Decimal("30.00")}
        assert stats["by_status"]["REJECTED"] == {"count": 1, "total": Decimal("20.00")}
        assert stats["by_status"]["PAID"]["count"] == 0
        assert stats["balance"].available_balance == Decimal("150.00")


class TestBatchMarkPaid:
    @pytest.mark.asyncio
    async def test_mixed_batch_reports_each_item(self, container, funded_host, host_id, admin_id):
        approved = await create_request(container, host_id)
        pending = await create_request(container, host_id)
        async with container.session_factory() as session:
            await container.withdrawals.approve(session, approved.id, admin_id)
            await session.commit()
        missing = uuid.uuid4()

        results = await container.withdrawals.mark_paid_batch(
            container.session_factory, [approved.id, pending.id, missing], admin_id
        )

        assert [(r.request_id, r.success) for r in results] == [
            (approved.id, True),
            (pending.id, False),
            (missing, False),
        ]
        assert results[0].status == "PAID"
        assert results[0].notification.template_kind == NotificationService.WITHDRAWAL_PAID
        assert results[1].error

        async with container.session_factory() as session:
            assert (await WithdrawalRepository(session).get_by_id(approved.id)).status == "PAID"
            assert (await WithdrawalRepository(session).get_by_id(pending.id)).status == "PENDING"


class TestWithdrawalEndpoints:
    @pytest.mark.asyncio
    async def test_host_flow_over_http(self, client, funded_host, host_headers, admin_headers):
        created = await client.post(
            BASE_URL,
            json={"withdrawal_type": "PARTIAL_HALF", "amount": "100.00", "notes": "Rent"},
            headers=host_headers,
        )
        assert created.status_code == 201
        request_id = created.json()["id"]
        assert created.json()["status"] == "PENDING"

        listed = await client.get(BASE_URL, params={"status": "PENDING"}, headers=host_headers)
        assert listed.json()["total"] == 1

        approved = await client.post(f"{ADMIN_URL}/{request_id}/approve", json={"note": "ok"}, headers=admin_headers)
        assert approved.status_code == 200
        assert approved.json()["status"] == "APPROVED"

        paid = await client.post(f"{ADMIN_URL}/{request_id}/mark-paid", headers=admin_headers)
        assert paid.status_code == 200
        assert paid.json()["status"] == "PAID"

        stats = (await client.get(f"{BASE_URL}/stats", headers=host_headers)).json()
        assert stats["by_status"]["PAID"]["count"] == 1
        assert Decimal(stats["balance"]["available_balance"]) == Decimal("80.00")

    @pytest.mark.asyncio
    async def test_insufficient_balance_is_a_bad_request(self, client, funded_host, host_headers):
        response = await client.post(
            BASE_URL, json={"withdrawal_type": "FULL", "amount": "500.00"}, headers=host_headers
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_illegal_transition_is_unprocessable(self, client, funded_host, host_headers, admin_headers):
        created = (await client.post(BASE_URL, json={"withdrawal_type": "FULL"}, headers=host_headers)).json()

        response = await client.post(f"{ADMIN_URL}/{created['id']}/mark-paid", headers=admin_headers)

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_host_cancel_over_http(self, client, funded_host, host_headers):
        created = (await client.post(BASE_URL, json={"withdrawal_type": "FULL"}, headers=host_headers)).json()

        response = await client.post(f"{BASE_URL}/{created['id']}/cancel", headers=host_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "CANCELLED"

    @pytest.mark.asyncio
    async def test_hosts_cannot_use_admin_routes(self, client, funded_host, host_headers):
        created = (await client.post(BASE_URL, json={"withdrawal_type": "FULL"}, headers=host_headers)).json()

        response = await client.post(f"{ADMIN_URL}/{created['id']}/approve", headers=host_headers)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_creates_for_host(self, client, funded_host, host_id, admin_id, admin_headers):
        response = await client.post(
            f"{ADMIN_URL}/for-host",
            json={"host_id": str(host_id), "withdrawal_type": "FULL", "amount": "25.00"},
            headers=admin_headers,
        )

        assert response.status_code == 201
        body = response.json()
        assert body["user_id"] == str(host_id)
        assert body["created_by"] == str(admin_id)

        listed = await client.get(ADMIN_URL, params={"host_id": str(host_id)}, headers=admin_headers)
        assert listed.json()["total"] == 1

    @pytest.mark.asyncio
    async def test_batch_mark_paid_notifies(self, client, container, notifier, make_paid_booking, host_id, admin_id, admin_headers):
        await make_paid_booking(host_id)
        async with container.session_factory() as session:
            account = await container.payment_accounts.create(session, host_id, WALLET)
            await container.payment_accounts.validate(session, account.id, admin_id)
            await session.commit()
        request = await create_request(container, host_id, amount="40")
        async with container.session_factory() as session:
            await container.withdrawals.approve(session, request.id, admin_id)
            await session.commit()

        response = await client.post(
            f"{ADMIN_URL}/mark-paid",
            json={"request_ids": [str(request.id), str(uuid.uuid4())]},
            headers=admin_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert (body["succeeded"], body["failed"]) == (1, 1)
        assert notifier.sent[0][0] == "jane@wallet.example"
        assert notifier.sent[0][1] == NotificationService.WITHDRAWAL_PAID
        assert notifier.sent[0][2]["amount"] == "40.00"
