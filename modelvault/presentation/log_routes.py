from datetime import date
from typing import Final

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from ..application.audit_service import query_logs
from ..infrastructure.database.database import get_session
from ..infrastructure.database.models import User
from ..infrastructure.database.repositories import LogFilters
from .dependencies import require_admin_user
from .schemas import (
    DeletedModelResponse,
    LogEntryResponse,
    LogPageResponse,
    UserSummary,
)

logs_router: Final = APIRouter(prefix="/logs", tags=["logs"])


@logs_router.get("", response_model=LogPageResponse, summary="Browse the audit log")
def api_list_logs(
    page: int = Query(1, ge=1),
    action: str | None = Query(None, description="Substring of the action text"),
    user: str | None = Query(None, description="Substring of user name or email"),
    date_from: date | None = None,
    date_to: date | None = None,
    session: Session = Depends(get_session),
    _admin: User = Depends(require_admin_user),
) -> LogPageResponse:
    """Twenty entries per page, newest first. Date bounds are inclusive."""
    result = query_logs(
        session,
        LogFilters(action=action, user=user, date_from=date_from, date_to=date_to),
        page=page,
    )
    return LogPageResponse(
        logs=[
            LogEntryResponse(
                id=view.entry.id,
                action=view.entry.action,
                created_at=view.entry.created_at,
                user=(
                    UserSummary.model_validate(view.entry.user)
                    if view.entry.user
                    else None
                ),
                model_id=view.entry.model_id,
                deleted_model=(
                    DeletedModelResponse.from_tombstone(view.deleted_model)
                    if view.deleted_model
                    else None
                ),
            )
            for view in result.logs
        ],
        total_pages=result.total_pages,
        current_page=result.current_page,
        total_count=result.total_count,
    )
