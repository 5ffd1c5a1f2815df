"""Unit tests for the booking status state machine (pure functions, no DB)."""

import itertools
from datetime import UTC, datetime, timedelta

from tourbook.models.booking import BookingStatus, PaymentStatus
from tourbook.services.booking_state import (
    RejectionReason,
    Rejection,
    Transition,
    decide_transition,
)

NOW = datetime(2024, 6, 10, 12, 0, tzinfo=UTC)
PAST_END = NOW - timedelta(days=1)
FUTURE_END = NOW + timedelta(days=3)


def _decide(current, payment, role, requested, ends_at=FUTURE_END):
    return decide_transition(current, payment, role, requested, now=NOW, ends_at=ends_at)


def _reason(outcome) -> RejectionReason:
    assert isinstance(outcome, Rejection), outcome
    return outcome.reason


class TestUnknownInputs:
    def test_invalid_requested_status(self):
        outcome = _decide(BookingStatus.PENDING, PaymentStatus.UNPAID, "seller", "archived")
        assert _reason(outcome) is RejectionReason.INVALID_STATUS

    def test_invalid_status_beats_unknown_role(self):
        outcome = _decide(BookingStatus.PENDING, PaymentStatus.UNPAID, "guide", "archived")
        assert _reason(outcome) is RejectionReason.INVALID_STATUS

    def test_unknown_role_forbidden(self):
        outcome = _decide(BookingStatus.PENDING, PaymentStatus.PAID, "guide", "confirmed")
        assert _reason(outcome) is RejectionReason.FORBIDDEN


class TestBuyer:
    def test_cancel_pending(self):
        outcome = _decide(BookingStatus.PENDING, PaymentStatus.UNPAID, "buyer", "cancelled")
        assert outcome == Transition(BookingStatus.CANCELLED, PaymentStatus.UNPAID)

    def test_cancel_pending_paid_marks_refunded(self):
        outcome = _decide(BookingStatus.PENDING, PaymentStatus.PAID, "buyer", "cancelled")
        assert outcome == Transition(BookingStatus.CANCELLED, PaymentStatus.REFUNDED)

    def test_cannot_cancel_confirmed(self):
        # Scenario E: pending-only cancellation for buyers
        outcome = _decide(BookingStatus.CONFIRMED, PaymentStatus.PAID, "buyer", "cancelled")
        assert _reason(outcome) is RejectionReason.NOT_ALLOWED

    def test_cannot_confirm(self):
        outcome = _decide(BookingStatus.PENDING, PaymentStatus.PAID, "buyer", "confirmed")
        assert _reason(outcome) is RejectionReason.NOT_ALLOWED

    def test_cancel_already_cancelled_not_allowed(self):
        outcome = _decide(BookingStatus.CANCELLED, PaymentStatus.UNPAID, "buyer", "cancelled")
        assert _reason(outcome) is RejectionReason.NOT_ALLOWED


class TestSeller:
    def test_confirm_unpaid_requires_payment(self):
        # Scenario C
        outcome = _decide(BookingStatus.PENDING, PaymentStatus.UNPAID, "seller", "confirmed")
        assert _reason(outcome) is RejectionReason.PAYMENT_REQUIRED

    def test_confirm_paid(self):
        # Scenario D
        outcome = _decide(BookingStatus.PENDING, PaymentStatus.PAID, "seller", "confirmed")
        assert outcome == Transition(BookingStatus.CONFIRMED, PaymentStatus.PAID)

    def test_complete_before_end_too_early(self):
        outcome = _decide(BookingStatus.CONFIRMED, PaymentStatus.PAID, "seller", "completed", ends_at=FUTURE_END)
        assert _reason(outcome) is RejectionReason.TOO_EARLY

    def test_complete_exactly_at_end(self):
        outcome = _decide(BookingStatus.CONFIRMED, PaymentStatus.PAID, "seller", "completed", ends_at=NOW)
        assert outcome == Transition(BookingStatus.COMPLETED, PaymentStatus.PAID)

    def test_complete_after_end(self):
        outcome = _decide(BookingStatus.CONFIRMED, PaymentStatus.PAID, "seller", "completed", ends_at=PAST_END)
        assert isinstance(outcome, Transition)

    def test_pending_straight_to_completed_is_illegal(self):
        outcome = _decide(BookingStatus.PENDING, PaymentStatus.PAID, "seller", "completed", ends_at=PAST_END)
        assert _reason(outcome) is RejectionReason.INVALID_TRANSITION

    def test_cancel_confirmed_keeps_payment_status(self):
        outcome = _decide(BookingStatus.CONFIRMED, PaymentStatus.PAID, "seller", "cancelled")
        assert outcome == Transition(BookingStatus.CANCELLED, PaymentStatus.PAID)

    def test_cannot_request_pending(self):
        outcome = _decide(BookingStatus.CONFIRMED, PaymentStatus.PAID, "seller", "pending")
        assert _reason(outcome) is RejectionReason.NOT_ALLOWED

    def test_confirm_twice_is_no_op(self):
        outcome = _decide(BookingStatus.CONFIRMED, PaymentStatus.PAID, "seller", "confirmed")
        assert _reason(outcome) is RejectionReason.NO_OP

    def test_completed_is_immutable(self):
        outcome = _decide(BookingStatus.COMPLETED, PaymentStatus.PAID, "seller", "cancelled")
        assert _reason(outcome) is RejectionReason.IMMUTABLE_TERMINAL_STATE

    def test_cancelled_is_terminal(self):
        outcome = _decide(BookingStatus.CANCELLED, PaymentStatus.PAID, "seller", "confirmed")
        assert _reason(outcome) is RejectionReason.INVALID_TRANSITION


class TestAdmin:
    def test_confirm_forbidden_even_when_paid(self):
        # Scenario F
        for payment in PaymentStatus:
            outcome = _decide(BookingStatus.PENDING, payment, "admin", "confirmed")
            assert _reason(outcome) is RejectionReason.FORBIDDEN

    def test_complete_forbidden(self):
        outcome = _decide(BookingStatus.CONFIRMED, PaymentStatus.PAID, "admin", "completed", ends_at=PAST_END)
        assert _reason(outcome) is RejectionReason.FORBIDDEN

    def test_cancel_confirmed(self):
        outcome = _decide(BookingStatus.CONFIRMED, PaymentStatus.PAID, "admin", "cancelled")
        assert outcome == Transition(BookingStatus.CANCELLED, PaymentStatus.PAID)

    def test_revert_to_pending_blocked_by_transition_table(self):
        outcome = _decide(BookingStatus.CONFIRMED, PaymentStatus.PAID, "admin", "pending")
        assert _reason(outcome) is RejectionReason.INVALID_TRANSITION

    def test_cancel_completed_immutable(self):
        outcome = _decide(BookingStatus.COMPLETED, PaymentStatus.PAID, "admin", "cancelled")
        assert _reason(outcome) is RejectionReason.IMMUTABLE_TERMINAL_STATE


def test_decision_is_total():
    """Every combination yields exactly one Transition or one Rejection, never an exception."""
    roles = ["buyer", "seller", "admin", "guide", ""]
    requested = [s.value for s in BookingStatus] + ["archived", ""]
    for current, payment, role, target, ends_at in itertools.product(
        BookingStatus, PaymentStatus, roles, requested, (PAST_END, FUTURE_END)
    ):
        outcome = _decide(current, payment, role, target, ends_at=ends_at)
        assert isinstance(outcome, Transition | Rejection)
        if isinstance(outcome, Transition):
            assert outcome.status.value == target
            assert outcome.status is not current
