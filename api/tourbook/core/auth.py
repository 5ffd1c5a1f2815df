"""Bearer token handling.

Tokens are issued by the identity service; this side only verifies them and
reads the actor id (``sub``) and role claims.
"""

from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from tourbook.core.config import settings


def create_access_token(subject: str, role: str, extra: dict | None = None) -> str:
    """Mint an access token in the identity service's format (local tooling and tests)."""
    expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    payload = {"sub": subject, "role": role, "exp": expire, "type": "access"}
    if extra:
        payload.update(extra)
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT. Raises JWTError on failure."""
    payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    if payload.get("type") != "access":
        raise JWTError("Invalid token type")
    return payload
