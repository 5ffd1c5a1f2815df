"""Payment intent issuing for pending bookings.

One Payment row per booking, created only after Stripe has returned an
intent. The Stripe call happens between two short transactions so no
database lock is held while waiting on the network; the second transaction
re-checks everything and cancels the fresh intent if it lost a race.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tourbook.core.config import Settings
from tourbook.core.errors import AuthorizationError, ConflictError, NotFoundError, StateError
from tourbook.models.booking import Booking, BookingStatus, PaymentStatus
from tourbook.models.payment import Payment, PaymentIntentStatus
from tourbook.services.stripe_service import cancel_payment_intent, create_payment_intent, to_minor_units

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentIntentHandle:
    payment_intent_id: str
    client_secret: str


def _check_payable(booking: Booking | None, actor_id: int) -> Booking:
    if booking is None:
        raise NotFoundError("booking_not_found", "Booking not found")
    if booking.buyer_id != actor_id:
        raise AuthorizationError("not_owner", "You do not own this booking")
    if booking.status is BookingStatus.CANCELLED:
        raise StateError("booking_cancelled", "Cannot pay for a cancelled booking")
    if booking.payment_status is PaymentStatus.PAID:
        raise ConflictError("already_paid", "Booking is already paid")
    if booking.status is not BookingStatus.PENDING:
        raise StateError("booking_not_pending", "Payment is only allowed for pending bookings")
    return booking


async def _check_no_payment(db: AsyncSession, booking_id: int) -> None:
    result = await db.execute(select(Payment.id).where(Payment.booking_id == booking_id))
    if result.first() is not None:
        raise ConflictError("payment_exists", "Payment already initiated for this booking")


class PaymentIntentIssuer:
    def __init__(self, sessions: async_sessionmaker[AsyncSession], config: Settings):
        self._sessions = sessions
        self._config = config

    async def create_intent(self, booking_id: int, actor_id: int) -> PaymentIntentHandle:
        async with self._sessions() as db, db.begin():
            booking = _check_payable(await db.get(Booking, booking_id), actor_id)
            await _check_no_payment(db, booking_id)
            amount = booking.total_price
            buyer_id = booking.buyer_id

        # Nothing is persisted if this raises
        intent = await create_payment_intent(self._config, to_minor_units(amount), booking_id, buyer_id)

        try:
            await self._record(booking_id, actor_id, intent.id, amount)
        except Exception:
            logger.warning("Payment for booking %s not recorded, cancelling intent %s", booking_id, intent.id)
            await cancel_payment_intent(self._config, intent.id)
            raise

        logger.info("Payment intent %s issued for booking %s (%s %s)", intent.id, booking_id, amount, self._config.payment_currency)
        return PaymentIntentHandle(payment_intent_id=intent.id, client_secret=intent.client_secret)

    async def _record(self, booking_id: int, actor_id: int, intent_id: str, amount: Decimal) -> None:
        try:
            async with self._sessions() as db, db.begin():
                result = await db.execute(select(Booking).where(Booking.id == booking_id).with_for_update())
                booking = _check_payable(result.scalar_one_or_none(), actor_id)
                await _check_no_payment(db, booking_id)
                db.add(
                    Payment(
                        booking_id=booking.id,
                        external_id=intent_id,
                        amount=amount,
                        currency=self._config.payment_currency,
                        status=PaymentIntentStatus.PENDING,
                    )
                )
        except IntegrityError:
            raise ConflictError("payment_exists", "Payment already initiated for this booking") from None
