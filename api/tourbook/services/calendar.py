"""Per-listing calendar: is a day range free?

Only pending and confirmed bookings hold dates. Ranges are half-open, so a
booking ending on the 4th does not clash with one starting on the 4th.

The predicate is only meaningful inside the transaction that will insert the
new booking, after the listing row has been locked (see BookingLedger.create).
"""

from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.models.booking import BLOCKING_STATUSES, Booking


async def find_overlap(
    db: AsyncSession,
    listing_id: int,
    start_date: date,
    end_date: date,
) -> Booking | None:
    """Return the first blocking booking intersecting [start_date, end_date), if any."""
    query = select(Booking).where(
        Booking.listing_id == listing_id,
        Booking.status.in_(BLOCKING_STATUSES),
        Booking.start_date < end_date,
        Booking.end_date > start_date,
    )
    result = await db.execute(query.order_by(Booking.start_date).limit(1))
    return result.scalar_one_or_none()


async def is_free(db: AsyncSession, listing_id: int, start_date: date, end_date: date) -> bool:
    return await find_overlap(db, listing_id, start_date, end_date) is None
