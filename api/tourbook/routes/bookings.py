"""Booking routes: create, list, status changes.

Thin adapters over BookingLedger; every rule lives in the services.
"""

from fastapi import APIRouter, Depends, status

from tourbook.core.dependencies import Actor, get_booking_ledger, get_current_actor, require_buyer, require_seller
from tourbook.schemas import BookingCreate, BookingOut, BookingStatusUpdate
from tourbook.services.ledger import BookingLedger

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
async def create_booking(
    body: BookingCreate,
    actor: Actor = Depends(require_buyer),
    ledger: BookingLedger = Depends(get_booking_ledger),
):
    return await ledger.create(
        buyer_id=actor.id,
        listing_id=body.listing_id,
        start=body.start_date,
        end=body.end_date,
    )


@router.get("/me", response_model=list[BookingOut])
async def list_my_bookings(
    actor: Actor = Depends(require_buyer),
    ledger: BookingLedger = Depends(get_booking_ledger),
):
    return await ledger.list_for_buyer(actor.id)


@router.get("/listing/{listing_id}", response_model=list[BookingOut])
async def list_listing_bookings(
    listing_id: int,
    actor: Actor = Depends(require_seller),
    ledger: BookingLedger = Depends(get_booking_ledger),
):
    return await ledger.list_for_listing(listing_id, seller_id=actor.id)


@router.patch("/{booking_id}/status", response_model=BookingOut)
async def update_booking_status(
    booking_id: int,
    body: BookingStatusUpdate,
    actor: Actor = Depends(get_current_actor),
    ledger: BookingLedger = Depends(get_booking_ledger),
):
    return await ledger.request_status_change(booking_id, actor.id, actor.role, body.status)
