"""Pydantic schemas for API serialisation."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

# --- Booking ---


class BookingCreate(BaseModel):
    listing_id: int
    # Dates or ISO-8601 instants; normalized to whole UTC days by the ledger
    start_date: datetime | date
    end_date: datetime | date


class BookingStatusUpdate(BaseModel):
    # Left as a free string: unknown values are a state-machine rejection, not a schema error
    status: str


class BookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    listing_id: int
    buyer_id: int
    seller_id: int
    start_date: date
    end_date: date
    day_count: int
    price_per_day: Decimal
    total_price: Decimal
    status: str
    payment_status: str
    created_at: datetime
    updated_at: datetime


# --- Payment ---


class PaymentIntentRequest(BaseModel):
    booking_id: int


class PaymentIntentOut(BaseModel):
    payment_intent_id: str
    client_secret: str


class WebhookAck(BaseModel):
    received: bool
    outcome: str | None = None
