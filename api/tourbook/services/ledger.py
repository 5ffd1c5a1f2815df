"""Booking ledger: the only writer of Booking rows.

Creation and status changes each run as one database transaction. Creation
locks the listing row before checking the calendar, so two buyers racing for
overlapping dates on the same listing are serialized by the database: the
second one sees the first one's booking and gets a ConflictError. Status
changes lock the booking row for the read-decide-write sequence.
"""

import logging
import math
from datetime import UTC, date, datetime, time, timedelta

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tourbook.core.config import Settings
from tourbook.core.errors import (
    AuthorizationError,
    BookingError,
    ConflictError,
    NotFoundError,
    StateError,
    ValidationError,
)
from tourbook.models.booking import BLOCKING_STATUSES, Booking, BookingStatus, PaymentStatus
from tourbook.models.listing import Listing
from tourbook.services.booking_state import ActorRole, Rejection, RejectionReason, decide_transition, parse_role
from tourbook.services.calendar import is_free

logger = logging.getLogger(__name__)

_instant = TypeAdapter(datetime)

_REJECTION_ERRORS: dict[RejectionReason, type[BookingError]] = {
    RejectionReason.INVALID_STATUS: ValidationError,
    RejectionReason.FORBIDDEN: AuthorizationError,
}


def parse_instant(value: date | datetime | str, field: str) -> datetime:
    """Parse a date, datetime or ISO-8601 string into an aware UTC datetime.

    Plain dates mean midnight UTC; naive datetimes are taken as UTC.
    """
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, time.min, tzinfo=UTC)
    try:
        parsed = _instant.validate_python(value)
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=UTC)
        return parsed.astimezone(UTC)
    except (PydanticValidationError, OverflowError):
        raise ValidationError("invalid_date", f"Invalid {field}: {value!r}") from None


def count_days(starts_at: datetime, ends_at: datetime) -> int:
    """Whole days charged for an interval: rounded up, at least one.

    36 hours -> 2 days, 3 hours -> 1 day.
    """
    return max(1, math.ceil((ends_at - starts_at) / timedelta(days=1)))


def rejection_error(rejection: Rejection) -> BookingError:
    error_class = _REJECTION_ERRORS.get(rejection.reason, StateError)
    return error_class(rejection.reason.value, rejection.message)


class BookingLedger:
    def __init__(self, sessions: async_sessionmaker[AsyncSession], config: Settings):
        self._sessions = sessions
        self._config = config

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create(
        self,
        buyer_id: int,
        listing_id: int,
        start: date | datetime | str,
        end: date | datetime | str,
    ) -> Booking:
        """Reserve [start, end) on a listing for a buyer. Returns the pending booking.

        The stored range starts on the start instant's UTC date and spans
        exactly the charged number of days, so start_date < end_date holds
        even for same-day requests.
        """
        starts_at = parse_instant(start, "start date")
        ends_at = parse_instant(end, "end date")
        if starts_at >= ends_at:
            raise ValidationError("invalid_interval", "End date must be after start date")

        days = count_days(starts_at, ends_at)
        if days > self._config.max_booking_days:
            raise ValidationError(
                "booking_too_long",
                f"Booking duration cannot exceed {self._config.max_booking_days} days",
            )

        start_date = starts_at.date()
        try:
            end_date = start_date + timedelta(days=days)
        except OverflowError:
            raise ValidationError("invalid_date", "End date is out of range") from None

        async with self._sessions() as db:
            try:
                async with db.begin():
                    listing = await self._lock_listing(db, listing_id)
                    self._check_listing(listing, buyer_id)
                    await self._check_no_active_booking(db, buyer_id, listing_id)

                    if not await is_free(db, listing_id, start_date, end_date):
                        raise ConflictError("overlap", "This tour is already booked for the selected dates")

                    booking = Booking(
                        listing_id=listing.id,
                        buyer_id=buyer_id,
                        seller_id=listing.seller_id,
                        start_date=start_date,
                        end_date=end_date,
                        day_count=days,
                        # Snapshot: later listing price changes never touch this booking
                        price_per_day=listing.price_per_day,
                        total_price=listing.price_per_day * days,
                        status=BookingStatus.PENDING,
                        payment_status=PaymentStatus.UNPAID,
                    )
                    db.add(booking)
                    await db.flush()
            except IntegrityError:
                raise ConflictError(
                    "duplicate_active_booking", "You already have an active booking for this tour"
                ) from None

        logger.info(
            "Booking %s created: listing=%s buyer=%s %s..%s total=%s",
            booking.id, listing_id, buyer_id, start_date, end_date, booking.total_price,
        )
        return booking

    async def _lock_listing(self, db: AsyncSession, listing_id: int) -> Listing:
        # The row lock is the per-listing write lock for the calendar.
        result = await db.execute(
            select(Listing).where(Listing.id == listing_id, Listing.is_active.is_(True)).with_for_update()
        )
        listing = result.scalar_one_or_none()
        if listing is None:
            raise NotFoundError("listing_not_found", "Listing not found")
        return listing

    def _check_listing(self, listing: Listing, buyer_id: int) -> None:
        if listing.seller_id is None:
            raise ValidationError("listing_unassigned", "Listing has no assigned seller")
        if listing.seller_id == buyer_id:
            raise ValidationError("self_booking", "You cannot book your own tour")
        price = listing.price_per_day
        if price is None or not price.is_finite() or price <= 0:
            raise ValidationError("invalid_price", "Invalid listing price")

    async def _check_no_active_booking(self, db: AsyncSession, buyer_id: int, listing_id: int) -> None:
        result = await db.execute(
            select(Booking.id).where(
                Booking.buyer_id == buyer_id,
                Booking.listing_id == listing_id,
                Booking.status.in_(BLOCKING_STATUSES),
            )
        )
        if result.first() is not None:
            raise ConflictError("duplicate_active_booking", "You already have an active booking for this tour")

    # ------------------------------------------------------------------
    # Status changes
    # ------------------------------------------------------------------

    async def request_status_change(
        self,
        booking_id: int,
        actor_id: int,
        actor_role: str,
        requested: str,
        *,
        now: datetime | None = None,
    ) -> Booking:
        """Apply a state-machine-approved status change, or raise the mapped error."""
        now = now or datetime.now(UTC)

        async with self._sessions() as db, db.begin():
            result = await db.execute(select(Booking).where(Booking.id == booking_id).with_for_update())
            booking = result.scalar_one_or_none()
            if booking is None:
                raise NotFoundError("booking_not_found", "Booking not found")

            _check_ownership(booking, actor_id, actor_role)

            previous = booking.status
            outcome = decide_transition(
                booking.status,
                booking.payment_status,
                actor_role,
                requested,
                now=now,
                ends_at=booking.ends_at,
            )
            if isinstance(outcome, Rejection):
                raise rejection_error(outcome)

            booking.status = outcome.status
            booking.payment_status = outcome.payment_status

        logger.info(
            "Booking %s: %s -> %s by %s %s (payment %s)",
            booking.id, previous, booking.status, actor_role, actor_id, booking.payment_status,
        )
        return booking

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, booking_id: int) -> Booking:
        async with self._sessions() as db:
            booking = await db.get(Booking, booking_id)
        if booking is None:
            raise NotFoundError("booking_not_found", "Booking not found")
        return booking

    async def list_for_buyer(self, buyer_id: int) -> list[Booking]:
        """The buyer's bookings that are not cancelled, soonest first."""
        async with self._sessions() as db:
            result = await db.execute(
                select(Booking)
                .where(Booking.buyer_id == buyer_id, Booking.status != BookingStatus.CANCELLED)
                .order_by(Booking.start_date)
            )
            return list(result.scalars().all())

    async def list_for_listing(self, listing_id: int, seller_id: int) -> list[Booking]:
        """Every booking on a listing, for the seller who owns it."""
        async with self._sessions() as db:
            listing = await db.get(Listing, listing_id)
            if listing is None:
                raise NotFoundError("listing_not_found", "Listing not found")
            if listing.seller_id != seller_id:
                raise AuthorizationError("not_owner", "You do not own this listing")

            result = await db.execute(
                select(Booking)
                .where(Booking.listing_id == listing_id, Booking.seller_id == seller_id)
                .order_by(Booking.start_date)
            )
            return list(result.scalars().all())


def _check_ownership(booking: Booking, actor_id: int, actor_role: str) -> None:
    """Buyers and sellers may only touch their own bookings; admins any."""
    role = parse_role(actor_role)
    if role is ActorRole.BUYER and booking.buyer_id != actor_id:
        raise AuthorizationError("not_owner", "Not allowed to modify this booking")
    if role is ActorRole.SELLER and booking.seller_id != actor_id:
        raise AuthorizationError("not_owner", "Not allowed to modify this booking")
