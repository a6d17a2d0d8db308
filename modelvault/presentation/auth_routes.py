from typing import Final

from fastapi import APIRouter, Depends, Response
from sqlmodel import Session

from ..application.session_service import authenticate, create_session_token
from ..infrastructure.database.database import get_session
from ..infrastructure.database.models import User
from .dependencies import require_user
from .schemas import LoginRequest, MessageResponse, SessionUser
from .session_cookie import clear_session_cookie, set_session_cookie

auth_router: Final = APIRouter(prefix="/auth", tags=["auth"])


@auth_router.post("/login", response_model=SessionUser, summary="Sign in")
def login(
    credentials: LoginRequest,
    response: Response,
    session: Session = Depends(get_session),
) -> SessionUser:
    """Check credentials and set the ``session`` cookie."""
    user = authenticate(session, credentials.email, credentials.password)
    set_session_cookie(response, create_session_token(user))
    return SessionUser.model_validate(user)


@auth_router.post("/logout", response_model=MessageResponse, summary="Sign out")
def logout(response: Response) -> MessageResponse:
    clear_session_cookie(response)
    return MessageResponse(message="Logged out")


@auth_router.get("/me", response_model=SessionUser, summary="Current user")
def me(user: User = Depends(require_user)) -> SessionUser:
    return SessionUser.model_validate(user)
