from typing import Final

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from ..application.sphere_service import (
    create_sphere,
    delete_sphere,
    list_spheres,
    update_sphere,
)
from ..domain.permissions import Permission
from ..infrastructure.database.database import get_session
from ..infrastructure.database.models import User
from .dependencies import require_admin_user, require_permission, require_user
from .schemas import MessageResponse, SphereCreate, SphereResponse

spheres_router: Final = APIRouter(prefix="/spheres", tags=["spheres"])


@spheres_router.get("", response_model=list[SphereResponse])
def api_list_spheres(
    session: Session = Depends(get_session),
    _user: User = Depends(require_user),
) -> list[SphereResponse]:
    return [SphereResponse.model_validate(s) for s in list_spheres(session)]


@spheres_router.post(
    "", response_model=SphereResponse, status_code=status.HTTP_201_CREATED
)
def api_create_sphere(
    body: SphereCreate,
    session: Session = Depends(get_session),
    user: User = Depends(require_permission(Permission.ADD_SPHERE)),
) -> SphereResponse:
    return SphereResponse.model_validate(create_sphere(session, user, body.name))


@spheres_router.put("/{sphere_id}", response_model=SphereResponse)
def api_update_sphere(
    sphere_id: str,
    body: SphereCreate,
    session: Session = Depends(get_session),
    user: User = Depends(require_admin_user),
) -> SphereResponse:
    sphere = update_sphere(session, user, sphere_id, body.name)
    return SphereResponse.model_validate(sphere)


@spheres_router.delete("/{sphere_id}", response_model=MessageResponse)
def api_delete_sphere(
    sphere_id: str,
    session: Session = Depends(get_session),
    user: User = Depends(require_admin_user),
) -> MessageResponse:
    delete_sphere(session, user, sphere_id)
    return MessageResponse(message="Sphere deleted")
