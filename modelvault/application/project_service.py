from typing import Final

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from ..domain.constants import MAX_CITY_LENGTH, MAX_PROJECT_NAME_LENGTH
from ..domain.entities import validate_entity_name
from ..domain.exceptions import ConflictError, NotFoundError, ValidationError
from ..domain.permissions import Permission
from ..domain.policy import require
from ..infrastructure.database.models import Project, User
from ..infrastructure.database.repositories import ModelRepository, ProjectRepository
from ..logging_config import get_logger
from ..logging_utils import log_database_operation
from .audit_service import AuditLogRecorder
from .validation import require_ids_exist, validated

logger: Final = get_logger(__name__)


def _validate_project_name(name: str) -> str:
    return validate_entity_name(name, "project", MAX_PROJECT_NAME_LENGTH)


def _validate_city(city: str | None) -> str | None:
    if city is None or not city.strip():
        return None
    city = city.strip()
    if len(city) > MAX_CITY_LENGTH:
        raise ValidationError(
            f"City cannot be longer than {MAX_CITY_LENGTH} characters"
        )
    return city


def _commit_project(session: Session, project: Project) -> Project:
    session.add(project)
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise ConflictError(f"A project named '{project.name}' already exists") from e
    session.refresh(project)
    return project


def list_projects(session: Session) -> list[Project]:
    return ProjectRepository(session).find_all()


def get_project(session: Session, project_id: str) -> Project:
    project = ProjectRepository(session).find_by_id(project_id)
    if project is None:
        raise NotFoundError(f"Project {project_id} not found")
    return project


def _attach_models(session: Session, project: Project, model_ids: list[str]) -> None:
    repo = ModelRepository(session)
    found = [repo.find_by_id(model_id) for model_id in model_ids]
    models = [model for model in found if model is not None]
    require_ids_exist("model", model_ids, models)
    project.models = models


def create_project(
    session: Session,
    actor: User | None,
    name: str,
    city: str | None = None,
    model_ids: list[str] | None = None,
) -> Project:
    actor = require(actor, Permission.CREATE_PROJECTS)
    name = validated("name", _validate_project_name, name)
    city = validated("city", _validate_city, city)

    repo = ProjectRepository(session)
    if repo.name_taken(name):
        raise ConflictError(f"A project named '{name}' already exists")

    project = Project(name=name, city=city)
    if model_ids:
        _attach_models(session, project, model_ids)
    project = _commit_project(session, project)

    log_database_operation("create", "projects", project_id=project.id)
    logger.info("Project created", project_id=project.id, actor_id=actor.id)
    AuditLogRecorder(session).record(f"Project created: {name}", user_id=actor.id)
    return project


def update_project(
    session: Session,
    actor: User | None,
    project_id: str,
    name: str | None = None,
    city: str | None = None,
    model_ids: list[str] | None = None,
) -> Project:
    actor = require(actor, Permission.EDIT_PROJECTS)
    project = get_project(session, project_id)

    if name is not None:
        name = validated("name", _validate_project_name, name)
        if ProjectRepository(session).name_taken(name, exclude_id=project.id):
            raise ConflictError(f"A project named '{name}' already exists")
        project.name = name
    if city is not None:
        project.city = validated("city", _validate_city, city)
    if model_ids is not None:
        _attach_models(session, project, model_ids)
    project = _commit_project(session, project)

    log_database_operation("update", "projects", project_id=project.id)
    logger.info("Project updated", project_id=project.id, actor_id=actor.id)
    AuditLogRecorder(session).record(
        f"Project updated: {project.name}", user_id=actor.id
    )
    return project


def delete_project(session: Session, actor: User | None, project_id: str) -> None:
    actor = require(actor, Permission.EDIT_PROJECTS)
    project = get_project(session, project_id)
    if project.models:
        raise ConflictError(
            f"Project '{project.name}' has {len(project.models)} model(s) attached"
        )

    name = project.name
    session.delete(project)
    session.commit()

    log_database_operation("delete", "projects", project_id=project_id)
    logger.info("Project deleted", project_id=project_id, actor_id=actor.id)
    AuditLogRecorder(session).record(f"Project deleted: {name}", user_id=actor.id)
