"""Stripe integration service for payment processing.

Wraps the Stripe Python SDK. Amounts are sent to Stripe in minor units.
SDK calls are blocking, so they run in a worker thread, and the HTTP client
carries the configured timeout.
"""

import asyncio
import contextlib
import functools
import logging
from decimal import ROUND_HALF_UP, Decimal

import stripe

from tourbook.core.config import Settings
from tourbook.core.errors import ExternalServiceError, SignatureError

logger = logging.getLogger(__name__)

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"


def _configure(config: Settings) -> None:
    """Set the Stripe API key, retry policy and HTTP timeout from settings."""
    stripe.api_key = config.stripe_secret_key
    stripe.max_network_retries = config.stripe_max_network_retries
    stripe.default_http_client = _http_client(config.stripe_timeout_seconds)


@functools.lru_cache
def _http_client(timeout: float) -> stripe.RequestsClient:
    return stripe.RequestsClient(timeout=timeout)


def to_minor_units(amount: Decimal) -> int:
    """Convert a decimal amount to integer minor units, rounding half up."""
    return int((amount * Decimal("100")).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


async def create_payment_intent(
    config: Settings,
    amount_minor: int,
    booking_id: int,
    buyer_id: int,
) -> stripe.PaymentIntent:
    """Create a Stripe PaymentIntent for a booking payment.

    Returns the PaymentIntent object (caller reads .id and .client_secret).
    Raises ExternalServiceError when Stripe fails or times out.
    """
    _configure(config)

    try:
        return await asyncio.to_thread(
            stripe.PaymentIntent.create,
            amount=amount_minor,
            currency=config.payment_currency,
            metadata={
                "booking_id": str(booking_id),
                "buyer_id": str(buyer_id),
            },
            automatic_payment_methods={"enabled": True},
        )
    except stripe.StripeError as exc:
        logger.warning("Stripe PaymentIntent.create failed for booking %s: %s", booking_id, exc)
        raise ExternalServiceError(
            "payment_provider_unavailable", "Payment provider is unavailable, try again later"
        ) from exc


async def cancel_payment_intent(config: Settings, payment_intent_id: str) -> None:
    """Cancel a PaymentIntent that no Payment row will reference."""
    _configure(config)

    with contextlib.suppress(stripe.StripeError):
        await asyncio.to_thread(stripe.PaymentIntent.cancel, payment_intent_id)


def construct_webhook_event(config: Settings, payload: bytes, sig_header: str) -> stripe.Event:
    """Verify a Stripe webhook signature and construct the event.

    Raises SignatureError for any verification or decoding failure; the cause
    is chained but never shown to the sender.
    """
    try:
        return stripe.Webhook.construct_event(
            payload,
            sig_header,
            config.stripe_webhook_secret,
            config.stripe_webhook_tolerance_seconds,
        )
    except (stripe.SignatureVerificationError, ValueError) as exc:
        raise SignatureError("invalid_signature", "Invalid webhook signature") from exc
