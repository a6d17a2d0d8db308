"""Tests for employee account management."""

import pytest
from sqlmodel import Session, col, select

from modelvault.application.employee_service import (
    EmployeeData,
    create_employee,
    delete_employee,
    get_employee,
    update_employee,
)
from modelvault.application.session_service import authenticate
from modelvault.application.sphere_service import create_sphere
from modelvault.domain.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from modelvault.domain.permissions import DEFAULT_ROLE_PERMISSIONS, Permission, Role
from modelvault.infrastructure.database.models import LogEntry, User


def new_employee(**overrides) -> EmployeeData:
    fields = {
        "name": "Ivan",
        "email": "Ivan@Example.com",
        "password": "hunter22",
        "role": Role.PROGRAMMER,
    }
    fields.update(overrides)
    return EmployeeData(**fields)


def test_create_employee_with_role_defaults(session: Session, admin: User):
    user = create_employee(session, admin, new_employee())

    assert user.email == "ivan@example.com"
    assert user.role == Role.PROGRAMMER
    assert user.permissions == [
        str(p) for p in DEFAULT_ROLE_PERMISSIONS[Role.PROGRAMMER]
    ]
    assert user.password_hash != "hunter22"
    assert authenticate(session, "IVAN@example.com", "hunter22").id == user.id

    entry = session.exec(select(LogEntry)).one()
    assert entry.action == "Employee created: Ivan (ivan@example.com)"
    assert entry.user_id == admin.id


def test_create_employee_with_explicit_permissions(session: Session, admin: User):
    user = create_employee(
        session,
        admin,
        new_employee(permissions=["download_models", "download_models", "add_sphere"]),
    )
    assert user.permissions == ["download_models", "add_sphere"]


def test_unknown_permission_is_rejected(session: Session, admin: User):
    with pytest.raises(ValidationError, match="fly"):
        create_employee(session, admin, new_employee(permissions=["fly"]))


def test_duplicate_email_conflicts(session: Session, admin: User):
    create_employee(session, admin, new_employee())
    with pytest.raises(ConflictError):
        create_employee(session, admin, new_employee(email="IVAN@example.com"))


@pytest.mark.parametrize(
    "overrides",
    [{"name": ""}, {"email": "not-an-email"}, {"password": "123"}, {"password": None}],
)
def test_invalid_employee_data(session: Session, admin: User, overrides: dict):
    with pytest.raises(ValidationError):
        create_employee(session, admin, new_employee(**overrides))


@pytest.mark.parametrize("email", ["a@", "@@", "no spaces@x y", "x@..", "ivan@"])
def test_malformed_email_is_rejected(session: Session, admin: User, email: str):
    with pytest.raises(ValidationError, match="Invalid email address") as excinfo:
        create_employee(session, admin, new_employee(email=email))

    assert excinfo.value.field_errors[0]["field"] == "email"
    assert session.exec(select(User).where(User.name == "Ivan")).first() is None


def test_update_rejects_malformed_email(session: Session, admin: User):
    user = create_employee(session, admin, new_employee())

    with pytest.raises(ValidationError):
        update_employee(session, admin, user.id, EmployeeData(email="ivan@"))

    session.refresh(user)
    assert user.email == "ivan@example.com"


def test_create_needs_manage_users(session: Session, artist: User):
    with pytest.raises(ForbiddenError):
        create_employee(session, artist, new_employee())


def test_sphere_only_kept_for_sphere_scoped_roles(session: Session, admin: User):
    sphere = create_sphere(session, admin, "Химия")

    artist = create_employee(
        session,
        admin,
        new_employee(email="a@example.com", role=Role.ARTIST, sphere_id=sphere.id),
    )
    programmer = create_employee(
        session, admin, new_employee(email="p@example.com", sphere_id=sphere.id)
    )

    assert artist.sphere_id == sphere.id
    assert programmer.sphere_id is None


def test_unknown_sphere_is_rejected(session: Session, admin: User):
    with pytest.raises(ValidationError):
        create_employee(
            session, admin, new_employee(role=Role.ARTIST, sphere_id="missing")
        )


def test_role_change_drops_sphere(session: Session, admin: User):
    sphere = create_sphere(session, admin, "Химия")
    user = create_employee(
        session, admin, new_employee(role=Role.ANALYST, sphere_id=sphere.id)
    )

    updated = update_employee(session, admin, user.id, EmployeeData(role=Role.MANAGER))

    assert updated.role == Role.MANAGER
    assert updated.sphere_id is None


def test_update_password_and_permissions(session: Session, admin: User):
    user = create_employee(session, admin, new_employee())

    update_employee(
        session,
        admin,
        user.id,
        EmployeeData(password="new-secret", permissions=[Permission.UPLOAD_MODELS]),
    )

    assert authenticate(session, "ivan@example.com", "new-secret").id == user.id
    assert user.permissions == ["upload_models"]


def test_update_email_to_taken_one_conflicts(session: Session, admin: User):
    user = create_employee(session, admin, new_employee())
    with pytest.raises(ConflictError):
        update_employee(session, admin, user.id, EmployeeData(email=admin.email))


def test_get_employee_is_admin_only(session: Session, admin: User, artist: User):
    assert get_employee(session, admin, artist.id).id == artist.id
    with pytest.raises(ForbiddenError):
        get_employee(session, artist, admin.id)
    with pytest.raises(NotFoundError):
        get_employee(session, admin, "missing")


def test_delete_employee_keeps_their_logs(session: Session, admin: User):
    user = create_employee(session, admin, new_employee(role=Role.ADMIN))
    create_employee(session, user, new_employee(email="other@example.com"))
    user_id = user.id

    delete_employee(session, admin, user_id)

    assert session.get(User, user_id) is None
    created = col(LogEntry.action).startswith("Employee created: Ivan")
    orphaned = session.exec(select(LogEntry).where(created)).all()
    assert {entry.user_id for entry in orphaned} == {None, admin.id}


def test_cannot_delete_self(session: Session, admin: User):
    with pytest.raises(ValidationError):
        delete_employee(session, admin, admin.id)


def test_cannot_delete_author_of_models(
    session: Session, admin: User, artist: User, make_model
):
    make_model("Bolt")
    with pytest.raises(ConflictError):
        delete_employee(session, admin, artist.id)
