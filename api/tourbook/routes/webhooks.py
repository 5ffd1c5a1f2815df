"""Stripe webhook handler.

Processes payment_intent.succeeded and payment_intent.payment_failed events.
"""

import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from tourbook.core.dependencies import get_payment_reconciler
from tourbook.schemas import WebhookAck
from tourbook.services.reconciler import PaymentReconciler, ReconcileOutcome

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/stripe", response_model=WebhookAck)
async def stripe_webhook(request: Request, reconciler: PaymentReconciler = Depends(get_payment_reconciler)):
    """Handle Stripe webhook events.

    A 500 tells Stripe the event was not applied, so it will be redelivered.
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature", "")

    try:
        outcome = await reconciler.apply(payload, sig_header)
    except Exception:
        logger.exception("Stripe webhook not applied")
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"received": False})

    if outcome is ReconcileOutcome.REJECTED:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"received": False})

    return WebhookAck(received=True, outcome=outcome)
