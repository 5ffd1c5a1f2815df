"""Stripe webhook reconciliation.

Applies verified payment events to Booking and Payment rows. Stripe may
deliver an event more than once and in any order, so every handler is
idempotent and runs in a single transaction: either both rows change or
neither does. Errors propagate so the caller reports the event as not
applied and Stripe retries it.

Handled events:
- payment_intent.succeeded: booking becomes paid, payment succeeded.
- payment_intent.payment_failed: payment failed. The booking is left alone;
  a failed attempt does not cancel the reservation.
Everything else is acknowledged and ignored.
"""

import enum
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tourbook.core.config import Settings
from tourbook.core.errors import ConflictError, NotFoundError, SignatureError, ValidationError
from tourbook.models.booking import Booking, PaymentStatus
from tourbook.models.payment import Payment, PaymentIntentStatus
from tourbook.services.stripe_service import (
    PAYMENT_FAILED,
    PAYMENT_SUCCEEDED,
    construct_webhook_event,
    to_minor_units,
)

logger = logging.getLogger(__name__)


class ReconcileOutcome(enum.StrEnum):
    APPLIED = "applied"
    NO_OP = "no_op"  # duplicate delivery, target state already reached
    IGNORED = "ignored"  # event kind we don't act on, or a stale conflicting event
    REJECTED = "rejected"  # signature did not verify


class PaymentReconciler:
    def __init__(self, sessions: async_sessionmaker[AsyncSession], config: Settings):
        self._sessions = sessions
        self._config = config

    async def apply(self, payload: bytes, sig_header: str) -> ReconcileOutcome:
        try:
            event = construct_webhook_event(self._config, payload, sig_header)
        except SignatureError:
            logger.warning("Rejected Stripe webhook: signature verification failed")
            return ReconcileOutcome.REJECTED

        event_type = event["type"]
        intent = event["data"]["object"]
        logger.info("Stripe event received: %s %s", event_type, event["id"])

        if event_type == PAYMENT_SUCCEEDED:
            return await self._apply_succeeded(intent)
        if event_type == PAYMENT_FAILED:
            return await self._apply_failed(intent)
        return ReconcileOutcome.IGNORED

    async def _apply_succeeded(self, intent: dict) -> ReconcileOutcome:
        booking_id = (intent.get("metadata") or {}).get("booking_id")
        if not booking_id:
            raise ValidationError("missing_booking_id", "Missing booking_id in payment intent metadata")
        try:
            booking_id = int(booking_id)
        except ValueError:
            raise ValidationError("missing_booking_id", f"Malformed booking_id {booking_id!r}") from None

        async with self._sessions() as db, db.begin():
            result = await db.execute(select(Booking).where(Booking.id == booking_id).with_for_update())
            booking = result.scalar_one_or_none()
            payment = await self._lock_payment(db, intent["id"])
            if booking is None:
                raise NotFoundError("booking_not_found", f"Booking {booking_id} not found")
            if payment.booking_id != booking.id:
                raise ConflictError(
                    "correlation_mismatch",
                    f"Payment {payment.external_id} belongs to booking {payment.booking_id}, not {booking.id}",
                )

            if booking.payment_status is PaymentStatus.PAID or payment.status is PaymentIntentStatus.SUCCEEDED:
                logger.info("Duplicate success for booking %s ignored", booking.id)
                return ReconcileOutcome.NO_OP

            received = intent.get("amount_received", intent.get("amount"))
            if received is not None and received != to_minor_units(payment.amount):
                logger.warning(
                    "Amount drift on %s: Stripe reports %s, booking %s recorded %s",
                    payment.external_id, received, booking.id, payment.amount,
                )

            booking.payment_status = PaymentStatus.PAID
            payment.status = PaymentIntentStatus.SUCCEEDED

        logger.info("Booking %s paid via %s", booking.id, payment.external_id)
        return ReconcileOutcome.APPLIED

    async def _apply_failed(self, intent: dict) -> ReconcileOutcome:
        async with self._sessions() as db, db.begin():
            payment = await self._lock_payment(db, intent["id"])

            if payment.status is PaymentIntentStatus.FAILED:
                return ReconcileOutcome.NO_OP
            if payment.status is PaymentIntentStatus.SUCCEEDED:
                # Late failure after a success: the success stands.
                logger.warning("Ignoring failure for %s, payment already succeeded", payment.external_id)
                return ReconcileOutcome.IGNORED

            payment.status = PaymentIntentStatus.FAILED

        logger.info("Payment %s for booking %s failed", payment.external_id, payment.booking_id)
        return ReconcileOutcome.APPLIED

    async def _lock_payment(self, db: AsyncSession, intent_id: str) -> Payment:
        result = await db.execute(select(Payment).where(Payment.external_id == intent_id).with_for_update())
        payment = result.scalar_one_or_none()
        if payment is None:
            raise NotFoundError("payment_not_found", f"No payment recorded for intent {intent_id}")
        return payment
