"""Pure authorization decisions.

``authorize`` answers a yes/no question; ``require`` and ``require_admin`` turn
a "no" into the right error kind. Nothing here touches the database.
"""

from collections.abc import Iterable
from typing import Protocol, TypeVar

from .exceptions import ForbiddenError, UnauthorizedError, ValidationError
from .permissions import Permission, PublicAction, Role


class Principal(Protocol):
    role: Role
    permissions: list[str]


Action = Permission | PublicAction
P = TypeVar("P", bound=Principal)


def authorize(user: Principal | None, action: Action) -> bool:
    if isinstance(action, PublicAction):
        return True
    if user is None:
        return False
    if user.role == Role.ADMIN:
        return True
    return action in user.permissions


def is_admin(user: Principal | None) -> bool:
    return user is not None and user.role == Role.ADMIN


def require(user: P | None, action: Action) -> P:
    """Return ``user`` if it may perform ``action``, else raise."""
    if authorize(user, action):
        return user  # type: ignore[return-value]
    if user is None:
        raise UnauthorizedError("Authentication required")
    raise ForbiddenError(f"Permission '{action}' required")


def require_any(user: P | None, *actions: Action) -> P:
    """Like ``require`` but passes when any one of ``actions`` is allowed."""
    if any(authorize(user, action) for action in actions):
        return user  # type: ignore[return-value]
    if user is None:
        raise UnauthorizedError("Authentication required")
    names = " or ".join(f"'{action}'" for action in actions)
    raise ForbiddenError(f"Permission {names} required")


def require_signed_in(user: P | None) -> P:
    if user is None:
        raise UnauthorizedError("Authentication required")
    return user


def require_admin(user: P | None) -> P:
    if user is None:
        raise UnauthorizedError("Authentication required")
    if user.role != Role.ADMIN:
        raise ForbiddenError("Administrator role required")
    return user


def parse_permissions(values: Iterable[str]) -> list[Permission]:
    """Validate permission strings against the closed set, dropping duplicates."""
    parsed: list[Permission] = []
    unknown: list[str] = []
    for value in values:
        try:
            permission = Permission(value)
        except ValueError:
            unknown.append(value)
            continue
        if permission not in parsed:
            parsed.append(permission)

    if unknown:
        raise ValidationError(
            f"Unknown permissions: {', '.join(sorted(unknown))}",
            field_errors=[
                {"field": "permissions", "code": "unknown_permission", "message": v}
                for v in unknown
            ],
        )
    return parsed
