"""Booking model.

A booking reserves a listing for a buyer over a half-open day range
[start_date, end_date). This is the core transactional entity in the system.
"""

import enum
from datetime import UTC, date, datetime, time
from decimal import Decimal

from sqlalchemy import CheckConstraint, Date, Enum, ForeignKey, Index, Numeric, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tourbook.models.base import Base, TimestampMixin


class BookingStatus(enum.StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(enum.StrEnum):
    UNPAID = "unpaid"
    PAID = "paid"
    REFUNDED = "refunded"


# Statuses that hold the listing's calendar
BLOCKING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)

_ACTIVE_PREDICATE = "status IN ('pending', 'confirmed')"


class Booking(TimestampMixin, Base):
    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(primary_key=True)
    listing_id: Mapped[int] = mapped_column(ForeignKey("listings.id"), nullable=False)
    buyer_id: Mapped[int] = mapped_column(nullable=False)
    # Copied from the listing at creation; never follows later ownership changes
    seller_id: Mapped[int] = mapped_column(nullable=False)

    # When (midnight UTC day boundaries)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    day_count: Mapped[int] = mapped_column(nullable=False)

    # Pricing snapshot
    price_per_day: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # Status
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, name="booking_status", values_callable=lambda e: [x.value for x in e]),
        default=BookingStatus.PENDING,
        nullable=False,
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, name="booking_payment_status", values_callable=lambda e: [x.value for x in e]),
        default=PaymentStatus.UNPAID,
        nullable=False,
    )

    # Relationships
    listing: Mapped["Listing"] = relationship(lazy="raise")

    __table_args__ = (
        CheckConstraint("start_date < end_date", name="ck_bookings_interval"),
        # One active booking per buyer and listing. Date overlap is a range
        # predicate and is enforced by the ledger transaction instead.
        Index(
            "ix_bookings_one_active_per_buyer",
            "buyer_id",
            "listing_id",
            unique=True,
            postgresql_where=text(_ACTIVE_PREDICATE),
            sqlite_where=text(_ACTIVE_PREDICATE),
        ),
        # Overlap queries
        Index("ix_bookings_listing_span", "listing_id", "status", "start_date", "end_date"),
        # My bookings
        Index("ix_bookings_buyer", "buyer_id", "start_date"),
        # Seller dashboards
        Index("ix_bookings_seller_listing", "seller_id", "listing_id"),
    )

    @property
    def ends_at(self) -> datetime:
        """End of the booked range as an aware UTC instant."""
        return datetime.combine(self.end_date, time.min, tzinfo=UTC)

    def __repr__(self) -> str:
        return f"<Booking {self.id} {self.start_date}..{self.end_date} listing={self.listing_id} {self.status}>"


from tourbook.models.listing import Listing  # noqa: E402
