"""Payment routes: start paying for a pending booking."""

from fastapi import APIRouter, Depends, status

from tourbook.core.dependencies import Actor, get_payment_issuer, require_buyer
from tourbook.schemas import PaymentIntentOut, PaymentIntentRequest
from tourbook.services.payments import PaymentIntentIssuer

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/intent", response_model=PaymentIntentOut, status_code=status.HTTP_201_CREATED)
async def create_payment_intent(
    body: PaymentIntentRequest,
    actor: Actor = Depends(require_buyer),
    issuer: PaymentIntentIssuer = Depends(get_payment_issuer),
):
    handle = await issuer.create_intent(body.booking_id, actor.id)
    return PaymentIntentOut(payment_intent_id=handle.payment_intent_id, client_secret=handle.client_secret)
