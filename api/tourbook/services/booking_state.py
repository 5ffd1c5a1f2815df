"""Booking status state machine.

Pure decision logic, no database access. Given the booking's current status
and payment status, the actor's role and the requested status, decide_transition()
returns either the approved (status, payment_status) pair or a Rejection with
a stable reason. It never raises.

Rules are checked in order and the first one that matches decides:

1. The requested status must be a known status.
2. Buyers may only cancel a pending booking. A paid booking becomes refunded
   (bookkeeping only, no money moves here).
3. Sellers may confirm, complete or cancel. Completing waits for the end of
   the booked range; confirming requires the booking to be paid.
4. Admins may only roll back (pending, cancelled), never advance.
5. Any other role is forbidden.
6. For everyone: no no-op requests, nothing leaves completed, and the
   transition table below must allow the move.
"""

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import assert_never

from tourbook.models.booking import BookingStatus, PaymentStatus


class ActorRole(enum.StrEnum):
    BUYER = "buyer"
    SELLER = "seller"
    ADMIN = "admin"


class RejectionReason(enum.StrEnum):
    INVALID_STATUS = "invalid_status"
    NOT_ALLOWED = "not_allowed"
    FORBIDDEN = "forbidden"
    TOO_EARLY = "too_early"
    PAYMENT_REQUIRED = "payment_required"
    NO_OP = "no_op"
    IMMUTABLE_TERMINAL_STATE = "immutable_terminal_state"
    INVALID_TRANSITION = "invalid_transition"


TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}

SELLER_TARGETS = frozenset({BookingStatus.CONFIRMED, BookingStatus.COMPLETED, BookingStatus.CANCELLED})
ADMIN_TARGETS = frozenset({BookingStatus.PENDING, BookingStatus.CANCELLED})


@dataclass(frozen=True)
class Transition:
    status: BookingStatus
    payment_status: PaymentStatus


@dataclass(frozen=True)
class Rejection:
    reason: RejectionReason
    message: str


def parse_role(role: str) -> ActorRole | None:
    try:
        return ActorRole(role)
    except ValueError:
        return None


def decide_transition(
    current: BookingStatus,
    payment_status: PaymentStatus,
    role: str,
    requested: str,
    *,
    now: datetime,
    ends_at: datetime,
) -> Transition | Rejection:
    try:
        target = BookingStatus(requested)
    except ValueError:
        return Rejection(RejectionReason.INVALID_STATUS, f"Invalid booking status: {requested!r}")

    current = BookingStatus(current)
    payment_status = PaymentStatus(payment_status)
    actor = parse_role(role)
    if actor is None:
        return Rejection(RejectionReason.FORBIDDEN, "Invalid user role")

    if actor is ActorRole.BUYER:
        if current is BookingStatus.PENDING and target is BookingStatus.CANCELLED:
            if payment_status is PaymentStatus.PAID:
                payment_status = PaymentStatus.REFUNDED
            return Transition(BookingStatus.CANCELLED, payment_status)
        return Rejection(RejectionReason.NOT_ALLOWED, "Buyers can only cancel pending bookings")
    elif actor is ActorRole.SELLER:
        if target not in SELLER_TARGETS:
            return Rejection(RejectionReason.NOT_ALLOWED, f"Sellers cannot set a booking to {target}")
        if target is BookingStatus.COMPLETED and now < ends_at:
            return Rejection(RejectionReason.TOO_EARLY, "Cannot complete a booking before the tour end date")
        if target is BookingStatus.CONFIRMED and payment_status is not PaymentStatus.PAID:
            return Rejection(RejectionReason.PAYMENT_REQUIRED, "Booking cannot be confirmed before payment")
    elif actor is ActorRole.ADMIN:
        if target not in ADMIN_TARGETS:
            return Rejection(RejectionReason.FORBIDDEN, "Admins cannot advance booking states")
    else:
        assert_never(actor)

    return _check_table(current, payment_status, target)


def _check_table(current: BookingStatus, payment_status: PaymentStatus, target: BookingStatus) -> Transition | Rejection:
    if target is current:
        return Rejection(RejectionReason.NO_OP, f"Booking is already {current}")
    if current is BookingStatus.COMPLETED:
        return Rejection(RejectionReason.IMMUTABLE_TERMINAL_STATE, "Completed bookings cannot be changed")
    if target not in TRANSITIONS[current]:
        return Rejection(RejectionReason.INVALID_TRANSITION, f"Cannot change status from {current} to {target}")
    return Transition(target, payment_status)
