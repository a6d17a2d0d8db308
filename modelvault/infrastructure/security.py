"""Password hashing (passlib bcrypt) and session token signing (PyJWT)."""

from datetime import UTC, datetime, timedelta
from typing import Any, Final

import jwt
from passlib.context import CryptContext

from ..config import settings
from ..constants import JWT_ALGORITHM, SESSION_TTL_DAYS

pwd_context: Final = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.password_hash_rounds,
)

SESSION_TTL: Final = timedelta(days=SESSION_TTL_DAYS)


def hash_password(plain: str) -> str:
    return pwd_context.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return pwd_context.verify(plain, hashed)
    except ValueError:
        # Malformed stored hash
        return False


def encode_token(claims: dict[str, Any], now: datetime | None = None) -> str:
    """Sign ``claims`` with an ``exp`` of now plus the session TTL."""
    issued = now or datetime.now(UTC)
    payload = {**claims, "exp": int((issued + SESSION_TTL).timestamp())}
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> dict[str, Any]:
    """Verify signature and expiry.

    Raises:
        jwt.InvalidTokenError: On any signature, format or expiry problem
    """
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[JWT_ALGORITHM],
        options={"require": ["exp", "id"]},
    )
