"""All models imported here so Base.metadata sees every table."""

from tourbook.models.base import Base
from tourbook.models.booking import BLOCKING_STATUSES, Booking, BookingStatus, PaymentStatus
from tourbook.models.listing import Listing
from tourbook.models.payment import Payment, PaymentIntentStatus

__all__ = [
    "Base",
    "Listing",
    "Booking",
    "BookingStatus",
    "PaymentStatus",
    "BLOCKING_STATUSES",
    "Payment",
    "PaymentIntentStatus",
]
