"""FastAPI dependencies: database session, asset store, current user and guards."""

from collections.abc import Callable

from fastapi import Depends, Request
from sqlmodel import Session

from ..application.session_service import resolve_session
from ..config import settings
from ..constants import SESSION_COOKIE_NAME
from ..domain.permissions import Permission
from ..domain.policy import require, require_admin, require_signed_in
from ..infrastructure.database.database import get_session
from ..infrastructure.database.models import User
from ..infrastructure.storage import AssetStore, create_asset_store

_asset_store: AssetStore | None = None


def get_asset_store() -> AssetStore:
    """Process-wide asset store, created on first use."""
    global _asset_store
    if _asset_store is None:
        _asset_store = create_asset_store(settings)
    return _asset_store


def close_asset_store() -> None:
    global _asset_store
    if _asset_store is not None:
        _asset_store.close()
        _asset_store = None


def get_current_user(
    request: Request, session: Session = Depends(get_session)
) -> User | None:
    return resolve_session(session, request.cookies.get(SESSION_COOKIE_NAME))


def require_user(user: User | None = Depends(get_current_user)) -> User:
    return require_signed_in(user)


def require_admin_user(user: User | None = Depends(get_current_user)) -> User:
    return require_admin(user)


def require_permission(permission: Permission) -> Callable[..., User]:
    """Dependency factory guarding a route with one permission."""

    def dependency(user: User | None = Depends(get_current_user)) -> User:
        return require(user, permission)

    return dependency
