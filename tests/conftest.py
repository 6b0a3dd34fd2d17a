"""Pytest configuration and shared fixtures for all tests."""

import os
import uuid
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path

# Minimal environment for the settings object, set before any app import
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_DSN", "sqlite+aiosqlite:///./stayledger-test.db")
os.environ.setdefault("JWT_SECRET_KEY", "test_secret_key_for_testing_only")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.core.retry import RetryPolicy
from app.database import create_engine, init_db
from app.models.booking import Booking
from app.models.payment_account import PaymentAccount
from app.services.container import ServiceContainer
from tests.factories import (
    VALID_IBAN,
    FakeNotifier,
    FakeProvider,
    auth_headers,
    new_ref,
    no_sleep,
)


# ============ Database and services ============


@pytest_asyncio.fixture
async def engine(tmp_path: Path):
    """File-backed SQLite so separate sessions really run concurrently."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def container(engine, provider, notifier) -> ServiceContainer:
    return ServiceContainer.build(
        engine=engine,
        provider=provider,
        notifier=notifier,
        retry_policy=RetryPolicy(attempts=3, base_delay=0, max_delay=0),
        sleep=no_sleep,
    )


@pytest_asyncio.fixture
async def db(container):
    async with container.session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(container):
    """HTTP client against the app with the test container installed."""
    from app.main import app

    app.state.container = container
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.state.container = None


# ============ Identities ============


@pytest.fixture
def host_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def admin_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def host_headers(host_id) -> dict[str, str]:
    return auth_headers(host_id, "host")


@pytest.fixture
def admin_headers(admin_id) -> dict[str, str]:
    return auth_headers(admin_id, "admin")


# ============ Seed data ============


@pytest.fixture
def make_paid_booking(container):
    """Insert a CONFIRMED/PAID booking and return it."""

    async def _make(host_id: uuid.UUID, price: str = "200.00", rate: str = "10.00") -> Booking:
        price_amount = Decimal(price)
        commission = Decimal(rate)
        booking = Booking(
            product_id=uuid.uuid4(),
            host_id=host_id,
            guest_id=uuid.uuid4(),
            guest_email="guest@example.com",
            check_in=date.today() - timedelta(days=5),
            check_out=date.today() - timedelta(days=2),
            guest_count=2,
            price_amount=price_amount,
            commission_rate=commission,
            host_earnings_amount=(price_amount * (100 - commission) / 100).quantize(Decimal("0.01")),
            currency="EUR",
            external_payment_ref=new_ref(),
            lifecycle_state="CONFIRMED",
            payment_state="PAID",
        )
        async with container.session_factory() as session:
            session.add(booking)
            await session.commit()
        return booking

    return _make


@pytest.fixture
def make_account(container):
    """Register a bank account for a user, validated unless asked otherwise."""

    async def _make(user_id: uuid.UUID, validated: bool = True, iban: str = VALID_IBAN) -> PaymentAccount:
        async with container.session_factory() as session:
            account = await container.payment_accounts.create(
                session,
                user_id,
                {"method": "BANK_TRANSFER", "account_holder_name": "Test Host", "iban": iban},
            )
            if validated:
                await container.payment_accounts.validate(session, account.id, uuid.uuid4())
            await session.commit()
        return account

    return _make
