from typing import Final

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from ..application.project_service import (
    create_project,
    delete_project,
    list_projects,
    update_project,
)
from ..domain.permissions import Permission
from ..infrastructure.database.database import get_session
from ..infrastructure.database.models import User
from .dependencies import require_permission, require_user
from .schemas import MessageResponse, ProjectCreate, ProjectResponse, ProjectUpdate

projects_router: Final = APIRouter(prefix="/projects", tags=["projects"])

edit_projects: Final = require_permission(Permission.EDIT_PROJECTS)


@projects_router.get("", response_model=list[ProjectResponse])
def api_list_projects(
    session: Session = Depends(get_session),
    _user: User = Depends(require_user),
) -> list[ProjectResponse]:
    return [ProjectResponse.from_project(p) for p in list_projects(session)]


@projects_router.post(
    "", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED
)
def api_create_project(
    body: ProjectCreate,
    session: Session = Depends(get_session),
    user: User = Depends(require_permission(Permission.CREATE_PROJECTS)),
) -> ProjectResponse:
    project = create_project(session, user, body.name, body.city, body.model_ids)
    return ProjectResponse.from_project(project)


@projects_router.put("/{project_id}", response_model=ProjectResponse)
def api_update_project(
    project_id: str,
    body: ProjectUpdate,
    session: Session = Depends(get_session),
    user: User = Depends(edit_projects),
) -> ProjectResponse:
    project = update_project(
        session, user, project_id, body.name, body.city, body.model_ids
    )
    return ProjectResponse.from_project(project)


@projects_router.delete("/{project_id}", response_model=MessageResponse)
def api_delete_project(
    project_id: str,
    session: Session = Depends(get_session),
    user: User = Depends(edit_projects),
) -> MessageResponse:
    """Only projects without attached models can be deleted."""
    delete_project(session, user, project_id)
    return MessageResponse(message="Project deleted")
