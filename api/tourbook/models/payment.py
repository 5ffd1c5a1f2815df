"""Payment model: the local record of one Stripe PaymentIntent per booking."""

import enum
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Enum, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tourbook.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from tourbook.models.booking import Booking


class PaymentIntentStatus(enum.StrEnum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class Payment(TimestampMixin, Base):
    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(primary_key=True)
    booking_id: Mapped[int] = mapped_column(ForeignKey("bookings.id"), unique=True, nullable=False)
    external_id: Mapped[str] = mapped_column(String(100), unique=True, index=True, nullable=False)
    # Booking total at intent time, kept to spot drift against the processor
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[PaymentIntentStatus] = mapped_column(
        Enum(PaymentIntentStatus, name="payment_intent_status", values_callable=lambda e: [x.value for x in e]),
        default=PaymentIntentStatus.PENDING,
        nullable=False,
    )

    booking: Mapped["Booking"] = relationship(lazy="raise")

    def __repr__(self) -> str:
        return f"<Payment {self.external_id} booking={self.booking_id} {self.status}>"
