"""Signed-cookie sessions: login, token issue and per-request resolution."""

from datetime import UTC, datetime
from typing import Final

import jwt
from sqlmodel import Session

from ..domain.exceptions import UnauthorizedError
from ..infrastructure.database.models import User
from ..infrastructure.database.repositories import UserRepository
from ..infrastructure.security import decode_token, encode_token, verify_password
from ..logging_config import get_logger
from ..metrics import record_login

logger: Final = get_logger(__name__)


def create_session_token(user: User, now: datetime | None = None) -> str:
    """Issue a token carrying ``{id, name, role, exp}``."""
    return encode_token(
        {"id": user.id, "name": user.name, "role": user.role.value}, now=now
    )


def authenticate(session: Session, email: str, password: str) -> User:
    """Check credentials. Emails match case-insensitively.

    Raises:
        UnauthorizedError: Unknown email or wrong password; the two are
            indistinguishable to the caller
    """
    user = UserRepository(session).find_by_email(email)
    if user is None or not verify_password(password, user.password_hash):
        record_login(success=False)
        logger.warning("Login failed", email_domain=email.rpartition("@")[2])
        raise UnauthorizedError("Invalid credentials")

    record_login(success=True)
    logger.info("Login succeeded", user_id=user.id)
    return user


def resolve_session(
    session: Session, token: str | None, now: datetime | None = None
) -> User | None:
    """Return the live user behind ``token``, or None.

    Never raises: a missing, malformed, tampered or expired token, or one whose
    user has since been deleted, all resolve to an anonymous caller.
    """
    if not token:
        return None

    try:
        payload = decode_token(token)
    except jwt.ExpiredSignatureError:
        logger.info("Session expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.warning("Rejected session token", reason=type(e).__name__)
        return None

    now = now or datetime.now(UTC)
    if float(payload["exp"]) < now.timestamp():
        logger.info("Session expired")
        return None

    user_id = payload.get("id")
    if not isinstance(user_id, str):
        return None

    user = UserRepository(session).find_by_id(user_id)
    if user is None:
        logger.info("Session refers to a deleted user", user_id=user_id)
    return user
