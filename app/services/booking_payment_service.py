"""Booking payment state machine driven by payment provider events.

Every handler runs inside one transaction and serializes on the booking's
payment reference. Bookings are created with a conditional upsert keyed by
``external_payment_ref``, so replays never create a second row, and state
changes go through ``assert_booking_transition`` so replays never apply twice.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import (
    BookingNotFoundRecoverable,
    InvalidBookingTransition,
    MissingEventMetadata,
    NotFoundError,
)
from app.core.locking import acquire_xact_lock, booking_lock_key
from app.core.retry import RetryPolicy, retry_until_found
from app.database import utc_now
from app.domain.booking_state import LifecycleState, PaymentState, assert_booking_transition
from app.gateways.base import PaymentProviderClient
from app.models.booking import Booking
from app.repositories.booking import BookingRepository
from app.schemas.webhook import (
    BookingMetadata,
    ChargeRefunded,
    CheckoutSessionCompleted,
    DisputeClosed,
    DisputeCreated,
    PaymentIntentCaptured,
    PaymentIntentCreated,
    PaymentIntentFailed,
    PaymentIntentSucceeded,
    parse_booking_metadata,
)
from app.services.notification_service import NotificationService
from app.utils.money import CENT, host_earnings, to_money

logger = logging.getLogger(__name__)


@dataclass
class PendingNotification:
    """A notification to send once the transaction has committed."""

    recipient: str | None
    template_kind: str
    variables: dict[str, Any] = field(default_factory=dict)


@dataclass
class EventResult:
    outcome: str  # processed, ignored
    booking: Booking | None = None
    detail: str | None = None
    notifications: list[PendingNotification] = field(default_factory=list)


def _booking_variables(booking: Booking) -> dict[str, Any]:
    return {
        "check_in": booking.check_in.isoformat(),
        "check_out": booking.check_out.isoformat(),
        "amount": str(to_money(booking.price_amount)),
        "currency": booking.currency,
    }


def _confirmation(booking: Booking) -> PendingNotification:
    return PendingNotification(
        booking.guest_email,
        NotificationService.BOOKING_CONFIRMED,
        _booking_variables(booking),
    )


class BookingPaymentService:
    """Applies provider events to bookings."""

    def __init__(
        self,
        provider: PaymentProviderClient,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.provider = provider
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self._sleep = sleep

    # ==================== EVENT HANDLERS ====================

    async def handle_payment_created(self, db: AsyncSession, event: PaymentIntentCreated) -> EventResult:
        """Create a CONFIRMED/UNPAID placeholder when the intent carries booking metadata."""
        intent = event.data.object
        ref = event.payment_ref

        try:
            metadata = parse_booking_metadata(intent.metadata, ref)
        except MissingEventMetadata as exc:
            logger.info(f"payment_intent.created {ref} has no usable booking metadata: {exc.detail}")
            return EventResult("ignored", detail="No booking metadata on payment intent")

        booking, inserted = await self._upsert_booking(
            db,
            ref,
            metadata,
            lifecycle=LifecycleState.CONFIRMED,
            payment=PaymentState.UNPAID,
            guest_email=intent.receipt_email,
            currency=intent.currency,
        )
        if inserted:
            logger.info(f"Booking {booking.id} placeholder created for {ref}")
        return EventResult("processed", booking=booking)

    async def handle_checkout_completed(self, db: AsyncSession, event: CheckoutSessionCompleted) -> EventResult:
        """Find-or-create the booking and mark it CONFIRMED/PAID."""
        session = event.data.object
        ref = event.payment_ref

        if session.status is not None and session.status != "complete":
            raise MissingEventMetadata(f"Checkout session {session.id} is not complete")
        metadata = parse_booking_metadata(session.metadata, ref)

        booking, inserted = await self._upsert_booking(
            db,
            ref,
            metadata,
            lifecycle=LifecycleState.CONFIRMED,
            payment=PaymentState.PAID,
            session_id=session.id,
            guest_email=session.email,
            currency=session.currency,
        )
        changed = self._confirm_paid(booking)

        result = EventResult("processed", booking=booking)
        if inserted or changed:
            logger.info(f"Booking {booking.id} confirmed and paid via checkout {session.id}")
            result.notifications.append(_confirmation(booking))
        return result

    async def handle_payment_succeeded(self, db: AsyncSession, event: PaymentIntentSucceeded) -> EventResult:
        """Mark the booking paid, reconstructing it from the checkout session if needed.

        The guest is told about the booking here when this event is the one
        that made it paid, since a later checkout event finds nothing to change.
        """
        booking, inserted = await self._get_or_reconstruct(db, event.payment_ref)
        changed = self._confirm_paid(booking)

        result = EventResult("processed", booking=booking)
        if inserted or changed:
            logger.info(f"Booking {booking.id} paid ({event.payment_ref})")
            result.notifications.append(_confirmation(booking))
        return result

    async def handle_payment_captured(self, db: AsyncSession, event: PaymentIntentCaptured) -> EventResult:
        """Mark the booking paid and payout eligible."""
        booking, inserted = await self._get_or_reconstruct(db, event.payment_ref)
        changed = self._confirm_paid(booking)
        if booking.captured_at is None:
            booking.captured_at = utc_now()
            logger.info(f"Booking {booking.id} captured, host payout eligible")
        await db.flush()

        result = EventResult("processed", booking=booking)
        if inserted or changed:
            result.notifications.append(_confirmation(booking))
        return result

    async def handle_payment_failed(self, db: AsyncSession, event: PaymentIntentFailed) -> EventResult:
        """Cancel the booking and tell the guest."""
        ref = event.payment_ref
        booking = await self._get_locked(db, ref)
        if booking is None:
            logger.info(f"payment_failed for {ref} without a booking, nothing to cancel")
            return EventResult("ignored", detail="No booking for payment")

        changed = self._apply(booking, LifecycleState.CANCELLED, PaymentState.UNPAID)
        result = EventResult("processed", booking=booking)
        if changed:
            result.notifications.append(
                PendingNotification(
                    booking.guest_email,
                    NotificationService.PAYMENT_FAILED,
                    _booking_variables(booking),
                )
            )
        return result

    async def handle_dispute_created(self, db: AsyncSession, event: DisputeCreated) -> EventResult:
        """Hold the booking while the dispute is open."""
        booking = await self._find_disputed_booking(db, event.payment_ref, event.data.object.id)

        changed = self._apply(booking, LifecycleState.CANCELLED, PaymentState.DISPUTED)
        result = EventResult("processed", booking=booking)
        if changed:
            logger.warning(f"Booking {booking.id} disputed ({event.data.object.reason})")
            result.notifications.append(
                PendingNotification(
                    booking.guest_email,
                    NotificationService.BOOKING_DISPUTED,
                    _booking_variables(booking),
                )
            )
        return result

    async def handle_dispute_closed(self, db: AsyncSession, event: DisputeClosed) -> EventResult:
        """Restore the booking if the dispute was won, otherwise leave it cancelled and unpaid."""
        booking = await self._find_disputed_booking(db, event.payment_ref, event.data.object.id)

        if event.won:
            self._apply(booking, LifecycleState.CONFIRMED, PaymentState.PAID)
        else:
            # Any other closing status, warning_closed included, leaves the stay cancelled
            self._apply(booking, LifecycleState.CANCELLED, PaymentState.UNPAID)
        logger.info(
            f"Dispute {event.data.object.id} closed ({event.data.object.status}), "
            f"booking {booking.id} now {booking.lifecycle_state}/{booking.payment_state}"
        )
        return EventResult("processed", booking=booking)

    async def handle_refunded(self, db: AsyncSession, event: ChargeRefunded) -> EventResult:
        """Cancel the booking as refunded and tell the guest."""
        ref = event.payment_ref
        if not ref:
            raise MissingEventMetadata(f"Charge {event.data.object.id} has no payment intent")

        booking = await self._get_locked(db, ref)
        if booking is None:
            raise BookingNotFoundRecoverable(ref)

        changed = self._apply(booking, LifecycleState.CANCELLED, PaymentState.REFUNDED)
        result = EventResult("processed", booking=booking)
        if changed:
            result.notifications.append(
                PendingNotification(
                    booking.guest_email,
                    NotificationService.BOOKING_REFUNDED,
                    _booking_variables(booking),
                )
            )
        return result

    # ==================== STAY COMPLETION ====================

    async def check_out(self, db: AsyncSession, booking_id: UUID) -> Booking:
        """Move a confirmed, paid booking to CHECKED_OUT.

        Raises:
            NotFoundError: If the booking does not exist
            InvalidBookingTransition: If the booking is not confirmed and paid
        """
        repo = BookingRepository(db)
        booking = await repo.get_by_id(booking_id)
        if booking is None:
            raise NotFoundError("Booking", str(booking_id))
        if booking.external_payment_ref:
            await acquire_xact_lock(db, booking_lock_key(booking.external_payment_ref))
        booking = await repo.get_by_id(booking_id, for_update=True)

        if booking.payment_state != PaymentState.PAID:
            raise InvalidBookingTransition(
                f"Only paid bookings can be checked out, booking is {booking.payment_state}"
            )
        self._apply(booking, LifecycleState.CHECKED_OUT, PaymentState.PAID)
        await db.flush()
        return booking

    # ==================== INTERNALS ====================

    def _apply(self, booking: Booking, lifecycle: LifecycleState, payment: PaymentState) -> bool:
        changed = assert_booking_transition(
            booking.lifecycle_state, booking.payment_state, lifecycle, payment
        )
        if not changed:
            return False

        now = utc_now()
        if booking.lifecycle_state != lifecycle:
            if lifecycle == LifecycleState.CONFIRMED:
                booking.confirmed_at = now
            elif lifecycle == LifecycleState.CANCELLED:
                booking.cancelled_at = now
            elif lifecycle == LifecycleState.CHECKED_OUT:
                booking.checked_out_at = now

        booking.lifecycle_state = lifecycle.value
        booking.payment_state = payment.value
        return True

    def _confirm_paid(self, booking: Booking) -> bool:
        # A checked-out stay is already past CONFIRMED/PAID
        if booking.payment_state == PaymentState.PAID and booking.lifecycle_state in (
            LifecycleState.CONFIRMED,
            LifecycleState.CHECKED_OUT,
        ):
            return False
        return self._apply(booking, LifecycleState.CONFIRMED, PaymentState.PAID)

    async def _get_locked(self, db: AsyncSession, ref: str) -> Booking | None:
        await acquire_xact_lock(db, booking_lock_key(ref))
        return await BookingRepository(db).get_by_payment_ref(ref, for_update=True)

    async def _get_or_reconstruct(self, db: AsyncSession, ref: str) -> tuple[Booking, bool]:
        booking = await self._get_locked(db, ref)
        if booking is not None:
            return booking, False

        session = await self.provider.find_session_by_payment_ref(ref)
        if session is None:
            raise BookingNotFoundRecoverable(ref)

        metadata = parse_booking_metadata(session.get("metadata") or {}, ref)
        customer = session.get("customer_details") or {}
        booking, inserted = await self._upsert_booking(
            db,
            ref,
            metadata,
            lifecycle=LifecycleState.CONFIRMED,
            payment=PaymentState.PAID,
            session_id=session.get("id"),
            guest_email=customer.get("email") or session.get("customer_email"),
            currency=session.get("currency"),
        )
        if inserted:
            logger.info(f"Booking {booking.id} reconstructed from checkout session {session.get('id')}")
        return booking, inserted

    async def _find_disputed_booking(self, db: AsyncSession, ref: str | None, dispute_id: str) -> Booking:
        if not ref:
            raise MissingEventMetadata(f"Dispute {dispute_id} has no payment intent")

        repo = BookingRepository(db)

        async def lookup() -> Booking | None:
            booking = await repo.get_by_payment_ref(ref)
            if booking is None:
                # End the read so the next attempt sees newly committed rows
                await db.rollback()
            return booking

        found = await retry_until_found(
            lookup,
            self.retry_policy,
            sleep=self._sleep,
            description=f"Booking lookup for dispute {dispute_id}",
        )
        if found is None:
            raise BookingNotFoundRecoverable(ref)
        return await self._get_locked(db, ref)

    async def _upsert_booking(
        self,
        db: AsyncSession,
        ref: str,
        metadata: BookingMetadata,
        lifecycle: LifecycleState,
        payment: PaymentState,
        session_id: str | None = None,
        guest_email: str | None = None,
        currency: str | None = None,
    ) -> tuple[Booking, bool]:
        """Insert the booking unless one exists for ``ref``; return it locked."""
        await acquire_xact_lock(db, booking_lock_key(ref))
        repo = BookingRepository(db)

        rate = metadata.commission_rate
        if rate is None:
            rate = settings.marketplace_commission_percent
        rate = Decimal(rate).quantize(CENT)
        price = to_money(metadata.price)
        now = utc_now()

        inserted = await repo.insert_if_absent(
            {
                "external_payment_ref": ref,
                "checkout_session_id": session_id,
                "product_id": metadata.product_id,
                "host_id": metadata.host_id,
                "guest_id": metadata.guest_id,
                "guest_email": metadata.guest_email or guest_email,
                "check_in": metadata.check_in,
                "check_out": metadata.check_out,
                "guest_count": metadata.guest_count,
                "price_amount": price,
                "commission_rate": rate,
                "host_earnings_amount": host_earnings(price, rate),
                "currency": (metadata.currency or currency or settings.default_currency).upper(),
                "lifecycle_state": lifecycle.value,
                "payment_state": payment.value,
                "confirmed_at": now if lifecycle == LifecycleState.CONFIRMED else None,
            }
        )

        booking = await repo.get_by_payment_ref(ref, for_update=True)
        if not inserted:
            if session_id and booking.checkout_session_id is None:
                booking.checkout_session_id = session_id
            if booking.guest_email is None:
                booking.guest_email = metadata.guest_email or guest_email
        return booking, inserted
