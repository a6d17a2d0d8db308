from dataclasses import dataclass
from typing import Final

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from ..domain.entities import normalize_email, validate_employee_name, validate_password
from ..domain.exceptions import ConflictError, NotFoundError, ValidationError
from ..domain.permissions import (
    DEFAULT_ROLE_PERMISSIONS,
    SPHERE_SCOPED_ROLES,
    Permission,
    Role,
)
from ..domain.policy import parse_permissions, require, require_admin
from ..infrastructure.database.models import User
from ..infrastructure.database.repositories import SphereRepository, UserRepository
from ..infrastructure.security import hash_password
from ..logging_config import get_logger
from ..logging_utils import log_database_operation
from .audit_service import AuditLogRecorder
from .validation import validated

logger: Final = get_logger(__name__)


@dataclass
class EmployeeData:
    """Fields for creating an employee, or a partial update when ``None``."""

    name: str | None = None
    email: str | None = None
    password: str | None = None
    role: Role | None = None
    permissions: list[str] | None = None
    sphere_id: str | None = None


def list_employees(session: Session) -> list[User]:
    return UserRepository(session).find_all()


def get_employee(session: Session, actor: User | None, employee_id: str) -> User:
    require_admin(actor)
    user = UserRepository(session).find_by_id(employee_id)
    if user is None:
        raise NotFoundError(f"Employee {employee_id} not found")
    return user


def _resolve_sphere(session: Session, role: Role, sphere_id: str | None) -> str | None:
    """Sphere membership only applies to sphere-scoped roles."""
    if role not in SPHERE_SCOPED_ROLES or not sphere_id:
        return None
    if SphereRepository(session).find_by_id(sphere_id) is None:
        raise ValidationError(
            f"Unknown sphere id: {sphere_id}",
            field_errors=[
                {"field": "sphere_id", "code": "unknown_id", "message": sphere_id}
            ],
        )
    return sphere_id


def _ensure_email_free(
    session: Session, email: str, exclude_id: str | None = None
) -> None:
    existing = UserRepository(session).find_by_email(email)
    if existing is not None and existing.id != exclude_id:
        raise ConflictError(f"An employee with email '{email}' already exists")


def _commit_user(session: Session, user: User) -> User:
    session.add(user)
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise ConflictError(
            f"An employee with email '{user.email}' already exists"
        ) from e
    session.refresh(user)
    return user


def create_employee(session: Session, actor: User | None, data: EmployeeData) -> User:
    actor = require(actor, Permission.MANAGE_USERS)
    if data.name is None or data.email is None or data.password is None:
        raise ValidationError("Name, email and password are required")

    name = validated("name", validate_employee_name, data.name)
    email = validated("email", normalize_email, data.email)
    password = validated("password", validate_password, data.password)
    role = data.role or Role.ARTIST
    if data.permissions is None:
        permissions = list(DEFAULT_ROLE_PERMISSIONS[role])
    else:
        permissions = parse_permissions(data.permissions)

    _ensure_email_free(session, email)
    user = _commit_user(
        session,
        User(
            name=name,
            email=email,
            password_hash=hash_password(password),
            role=role,
            permissions=[str(permission) for permission in permissions],
            sphere_id=_resolve_sphere(session, role, data.sphere_id),
        ),
    )

    log_database_operation("create", "users", user_id=user.id, role=str(role))
    logger.info("Employee created", user_id=user.id, actor_id=actor.id)
    AuditLogRecorder(session).record(
        f"Employee created: {user.name} ({user.email})", user_id=actor.id
    )
    return user


def update_employee(
    session: Session, actor: User | None, employee_id: str, data: EmployeeData
) -> User:
    actor = require(actor, Permission.MANAGE_USERS)
    user = UserRepository(session).find_by_id(employee_id)
    if user is None:
        raise NotFoundError(f"Employee {employee_id} not found")

    if data.name is not None:
        user.name = validated("name", validate_employee_name, data.name)
    if data.email is not None:
        email = validated("email", normalize_email, data.email)
        _ensure_email_free(session, email, exclude_id=user.id)
        user.email = email
    if data.password:
        password = validated("password", validate_password, data.password)
        user.password_hash = hash_password(password)
    if data.role is not None:
        user.role = data.role
    if data.permissions is not None:
        user.permissions = [str(p) for p in parse_permissions(data.permissions)]

    # Re-evaluated on every update so a role change drops a stale sphere
    sphere_id = data.sphere_id if data.sphere_id is not None else user.sphere_id
    user.sphere_id = _resolve_sphere(session, user.role, sphere_id)

    user = _commit_user(session, user)
    log_database_operation("update", "users", user_id=user.id)
    logger.info("Employee updated", user_id=user.id, actor_id=actor.id)
    AuditLogRecorder(session).record(
        f"Employee updated: {user.name} ({user.email})", user_id=actor.id
    )
    return user


def delete_employee(session: Session, actor: User | None, employee_id: str) -> None:
    """Delete an employee. Their log entries stay, with the user reference nulled.

    Raises:
        ValidationError: When deleting oneself
        ConflictError: When the employee still authors models
    """
    actor = require(actor, Permission.MANAGE_USERS)
    if employee_id == actor.id:
        raise ValidationError("You cannot delete your own account")

    repo = UserRepository(session)
    user = repo.find_by_id(employee_id)
    if user is None:
        raise NotFoundError(f"Employee {employee_id} not found")
    if repo.authored_model_count(user.id):
        raise ConflictError(
            f"Employee '{user.name}' still authors models and cannot be deleted"
        )

    label = f"{user.name} ({user.email})"
    session.delete(user)
    session.commit()

    log_database_operation("delete", "users", user_id=employee_id)
    logger.info("Employee deleted", user_id=employee_id, actor_id=actor.id)
    AuditLogRecorder(session).record(f"Employee deleted: {label}", user_id=actor.id)
