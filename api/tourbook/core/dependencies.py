"""FastAPI dependencies for injection into route handlers."""

from collections.abc import Callable
from dataclasses import dataclass

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from tourbook.core.auth import decode_token
from tourbook.core.config import settings
from tourbook.core.database import async_session_factory
from tourbook.core.errors import AuthorizationError
from tourbook.services.booking_state import ActorRole
from tourbook.services.ledger import BookingLedger
from tourbook.services.payments import PaymentIntentIssuer
from tourbook.services.reconciler import PaymentReconciler

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Actor:
    """The authenticated caller as vouched for by the identity service."""

    id: int
    role: str


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Actor:
    """Extract the actor id and role from the JWT bearer token."""
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    try:
        payload = decode_token(credentials.credentials)
        actor_id = int(payload["sub"])
        role = str(payload["role"])
    except (JWTError, KeyError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from None

    return Actor(id=actor_id, role=role)


def require_role(*allowed_roles: ActorRole) -> Callable:
    """Factory: return a dependency that enforces the actor has one of the allowed roles.

    Usage in a route:
        @router.post("/bookings")
        async def create(actor: Actor = Depends(require_role(ActorRole.BUYER))):
            ...
    """

    async def _check(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in allowed_roles:
            raise AuthorizationError(
                "wrong_role",
                f"Requires one of: {', '.join(r.value for r in allowed_roles)}",
            )
        return actor

    return _check


require_buyer = require_role(ActorRole.BUYER)
require_seller = require_role(ActorRole.SELLER)


# ---------------------------------------------------------------------------
# Booking core components
# ---------------------------------------------------------------------------


def get_booking_ledger() -> BookingLedger:
    return BookingLedger(async_session_factory, settings)


def get_payment_issuer() -> PaymentIntentIssuer:
    return PaymentIntentIssuer(async_session_factory, settings)


def get_payment_reconciler() -> PaymentReconciler:
    return PaymentReconciler(async_session_factory, settings)
