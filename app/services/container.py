"""Service wiring.

Built once per process (application lifespan, Celery task run) and handed to
request handlers through FastAPI dependencies. Tests build their own with fakes.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from app.core.retry import RetryPolicy
from app.database import close_db, create_engine, create_session_factory
from app.gateways.base import PaymentProviderClient
from app.gateways.stripe_gateway import StripeGateway
from app.services.balance_service import BalanceService
from app.services.booking_payment_service import BookingPaymentService
from app.services.notification_service import NotificationService
from app.services.payment_account_service import PaymentAccountService
from app.services.webhook_dispatcher import WebhookDispatcher
from app.services.withdrawal_service import WithdrawalService


@dataclass
class ServiceContainer:
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    provider: PaymentProviderClient
    notifier: NotificationService
    balance: BalanceService
    payment_accounts: PaymentAccountService
    withdrawals: WithdrawalService
    booking_payments: BookingPaymentService
    webhooks: WebhookDispatcher

    @classmethod
    def build(
        cls,
        engine: AsyncEngine | None = None,
        provider: PaymentProviderClient | None = None,
        notifier: NotificationService | None = None,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> "ServiceContainer":
        engine = engine or create_engine()
        session_factory = create_session_factory(engine)
        provider = provider or StripeGateway()
        balance = BalanceService()
        booking_payments = BookingPaymentService(provider, retry_policy=retry_policy, sleep=sleep)

        return cls(
            engine=engine,
            session_factory=session_factory,
            provider=provider,
            notifier=notifier or NotificationService(),
            balance=balance,
            payment_accounts=PaymentAccountService(),
            withdrawals=WithdrawalService(balance),
            booking_payments=booking_payments,
            webhooks=WebhookDispatcher(session_factory, booking_payments),
        )

    async def close(self) -> None:
        await self.notifier.close()
        await close_db(self.engine)
