"""Domain errors for the booking core.

Every error carries a stable machine-readable ``reason`` and a human message.
The API layer renders them with their class status code, so none of them ever
surfaces as a 500.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class BookingError(Exception):
    """Base class for all booking-core errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, reason: str, message: str):
        self.reason = reason
        self.message = message
        super().__init__(message)

    def to_detail(self) -> dict:
        return {"reason": self.reason, "message": self.message}


class ValidationError(BookingError):
    """Malformed or missing input: bad dates, bad price, interval too long."""

    status_code = 422


class ConflictError(BookingError):
    """Overlapping interval, duplicate active booking, duplicate payment, already paid."""

    status_code = status.HTTP_409_CONFLICT


class AuthorizationError(BookingError):
    """Wrong owner or wrong role for the requested operation."""

    status_code = status.HTTP_403_FORBIDDEN


class StateError(BookingError):
    """Transition refused by the booking state machine."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(BookingError):
    status_code = status.HTTP_404_NOT_FOUND


class ExternalServiceError(BookingError):
    """Payment processor call failed or timed out."""

    status_code = status.HTTP_502_BAD_GATEWAY


class SignatureError(BookingError):
    """Webhook signature could not be verified. Never rendered with its cause."""

    status_code = status.HTTP_400_BAD_REQUEST


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(BookingError)
    async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
        if isinstance(exc, SignatureError):
            return JSONResponse(status_code=exc.status_code, content={"received": False})
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.reason)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})
