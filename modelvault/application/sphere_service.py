"""Sphere (business domain) management.

Spheres double as catalogue filters in the UI, whose "all models" and "no
sphere" entries are labels only; those names are refused here in any case.
"""

from typing import Final

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from ..domain.constants import DEFAULT_SPHERES
from ..domain.entities import is_reserved_sphere_name, validate_sphere_name
from ..domain.exceptions import ConflictError, NotFoundError
from ..domain.permissions import Permission
from ..domain.policy import require, require_admin
from ..infrastructure.database.models import Sphere, User
from ..infrastructure.database.repositories import SphereRepository
from ..logging_config import get_logger
from ..logging_utils import log_database_operation
from .audit_service import AuditLogRecorder
from .validation import validated

logger: Final = get_logger(__name__)


def _commit_sphere(session: Session, sphere: Sphere) -> Sphere:
    session.add(sphere)
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise ConflictError(f"A sphere named '{sphere.name}' already exists") from e
    session.refresh(sphere)
    return sphere


def list_spheres(session: Session) -> list[Sphere]:
    return SphereRepository(session).find_all()


def get_sphere(session: Session, sphere_id: str) -> Sphere:
    sphere = SphereRepository(session).find_by_id(sphere_id)
    if sphere is None:
        raise NotFoundError(f"Sphere {sphere_id} not found")
    return sphere


def create_sphere(session: Session, actor: User | None, name: str) -> Sphere:
    actor = require(actor, Permission.ADD_SPHERE)
    name = validated("name", validate_sphere_name, name)
    if SphereRepository(session).name_taken(name):
        raise ConflictError(f"A sphere named '{name}' already exists")

    sphere = _commit_sphere(session, Sphere(name=name))
    log_database_operation("create", "spheres", sphere_id=sphere.id)
    logger.info("Sphere created", sphere_id=sphere.id, actor_id=actor.id)
    AuditLogRecorder(session).record(f"Sphere created: {name}", user_id=actor.id)
    return sphere


def update_sphere(
    session: Session, actor: User | None, sphere_id: str, name: str
) -> Sphere:
    actor = require_admin(actor)
    sphere = get_sphere(session, sphere_id)
    name = validated("name", validate_sphere_name, name)
    if SphereRepository(session).name_taken(name, exclude_id=sphere.id):
        raise ConflictError(f"A sphere named '{name}' already exists")

    old_name = sphere.name
    sphere.name = name
    sphere = _commit_sphere(session, sphere)
    log_database_operation("update", "spheres", sphere_id=sphere.id)
    AuditLogRecorder(session).record(
        f'Sphere renamed: "{old_name}" → "{name}"', user_id=actor.id
    )
    return sphere


def delete_sphere(session: Session, actor: User | None, sphere_id: str) -> None:
    actor = require_admin(actor)
    sphere = get_sphere(session, sphere_id)
    count = SphereRepository(session).model_count(sphere.id)
    if count:
        raise ConflictError(f"Sphere '{sphere.name}' has {count} model(s) attached")

    name = sphere.name
    session.delete(sphere)
    session.commit()
    log_database_operation("delete", "spheres", sphere_id=sphere_id)
    logger.info("Sphere deleted", sphere_id=sphere_id, actor_id=actor.id)
    AuditLogRecorder(session).record(f"Sphere deleted: {name}", user_id=actor.id)


def seed_default_spheres(session: Session) -> list[Sphere]:
    """Insert the default spheres that do not exist yet. Used by the admin CLI."""
    repo = SphereRepository(session)
    created = []
    for name in DEFAULT_SPHERES:
        if repo.name_taken(name):
            continue
        sphere = Sphere(name=name)
        session.add(sphere)
        created.append(sphere)
    session.commit()
    for sphere in created:
        session.refresh(sphere)
    return created


def remove_reserved_spheres(session: Session) -> list[str]:
    """Delete spheres carrying a reserved filter label, left over from old data.

    Model links are removed by the link table's cascade.
    """
    removed = []
    for sphere in SphereRepository(session).find_all():
        if is_reserved_sphere_name(sphere.name):
            removed.append(sphere.name)
            session.delete(sphere)
    session.commit()
    if removed:
        logger.info("Reserved spheres removed", names=removed)
    return removed
