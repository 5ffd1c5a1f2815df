"""Shared test fixtures.

Tests run against a SQLite file so that separate sessions really are
separate connections (needed for the concurrency tests). The environment is
set before any tourbook import so the global settings pick it up.
"""

import hashlib
import hmac
import json
import os
import tempfile
import time
from decimal import Decimal

_DB_PATH = os.path.join(tempfile.gettempdir(), f"tourbook-test-{os.getpid()}.db")
os.environ["TB_DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_PATH}"
os.environ["TB_SECRET_KEY"] = "test-secret"
os.environ["TB_STRIPE_WEBHOOK_SECRET"] = "whsec_test"
os.environ["TB_MAX_BOOKING_DAYS"] = "30"

import pytest  # noqa: E402

from tourbook.core.config import settings  # noqa: E402
from tourbook.core.database import async_session_factory, engine  # noqa: E402
from tourbook.models import Base, Listing  # noqa: E402
from tourbook.services.ledger import BookingLedger  # noqa: E402
from tourbook.services.payments import PaymentIntentIssuer  # noqa: E402
from tourbook.services.reconciler import PaymentReconciler  # noqa: E402

BUYER_ID = 101
OTHER_BUYER_ID = 102
SELLER_ID = 201
OTHER_SELLER_ID = 202
ADMIN_ID = 301


@pytest.fixture(autouse=True)
async def _fresh_schema():
    """Dispose stale pool connections and rebuild the schema before each test.

    The global engine is created at import time. When pytest-asyncio creates a new
    event loop for tests, any existing pooled connections are bound to the old loop.
    Disposing before each test forces fresh connections in the current loop.
    """
    await engine.dispose()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


@pytest.fixture
def ledger() -> BookingLedger:
    return BookingLedger(async_session_factory, settings)


@pytest.fixture
def issuer() -> PaymentIntentIssuer:
    return PaymentIntentIssuer(async_session_factory, settings)


@pytest.fixture
def reconciler() -> PaymentReconciler:
    return PaymentReconciler(async_session_factory, settings)


async def create_listing(
    price: str = "50.00",
    seller_id: int | None = SELLER_ID,
    title: str = "Old Town Walk",
) -> Listing:
    async with async_session_factory() as db:
        listing = Listing(title=title, seller_id=seller_id, price_per_day=Decimal(price))
        db.add(listing)
        await db.commit()
        return listing


@pytest.fixture
async def listing() -> Listing:
    """Seller 201's listing at 50/day."""
    return await create_listing()


def signed_event(event: dict, secret: str = "whsec_test") -> tuple[bytes, str]:
    """Serialize an event and sign it the way Stripe does (v1 HMAC-SHA256)."""
    payload = json.dumps(event)
    timestamp = int(time.time())
    signature = hmac.new(
        secret.encode("utf-8"),
        f"{timestamp}.{payload}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return payload.encode("utf-8"), f"t={timestamp},v1={signature}"


def intent_event(event_type: str, intent_id: str, booking_id: int | None = None, amount: int | None = None) -> dict:
    intent: dict = {"id": intent_id, "object": "payment_intent", "metadata": {}}
    if booking_id is not None:
        intent["metadata"]["booking_id"] = str(booking_id)
    if amount is not None:
        intent["amount"] = amount
    return {"id": f"evt_{intent_id}_{event_type}", "type": event_type, "data": {"object": intent}}
