"""Tests for project and sphere management."""

import pytest
from sqlmodel import Session, select

from modelvault.application.project_service import (
    create_project,
    delete_project,
    list_projects,
    update_project,
)
from modelvault.application.sphere_service import (
    create_sphere,
    delete_sphere,
    list_spheres,
    remove_reserved_spheres,
    seed_default_spheres,
    update_sphere,
)
from modelvault.domain.constants import DEFAULT_SPHERES
from modelvault.domain.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from modelvault.domain.permissions import Permission, Role
from modelvault.infrastructure.database.models import LogEntry, Sphere, User


@pytest.mark.parametrize(
    "name", ["Все модели", "все модели", "БЕЗ СФЕРЫ", " без сферы "]
)
def test_reserved_sphere_names_are_rejected(session: Session, admin: User, name: str):
    with pytest.raises(ValidationError):
        create_sphere(session, admin, name)
    assert list_spheres(session) == []


def test_sphere_names_are_unique_case_insensitively(session: Session, admin: User):
    create_sphere(session, admin, "Химия")
    with pytest.raises(ConflictError):
        create_sphere(session, admin, "ХИМИЯ")


def test_create_sphere_needs_add_sphere(session: Session, make_user):
    artist = make_user(Role.ARTIST)
    with pytest.raises(ForbiddenError):
        create_sphere(session, artist, "Химия")

    curator = make_user(Role.ANALYST, permissions=[Permission.ADD_SPHERE])
    assert create_sphere(session, curator, "Химия").name == "Химия"


def test_rename_sphere_is_admin_only_and_logged(
    session: Session, admin: User, make_user
):
    sphere = create_sphere(session, admin, "Химия")
    curator = make_user(Role.ANALYST, permissions=[Permission.ADD_SPHERE])

    with pytest.raises(ForbiddenError):
        update_sphere(session, curator, sphere.id, "Chemistry")

    renamed = update_sphere(session, admin, sphere.id, "Chemistry")

    assert renamed.name == "Chemistry"
    actions = [e.action for e in session.exec(select(LogEntry)).all()]
    assert 'Sphere renamed: "Химия" → "Chemistry"' in actions


def test_delete_sphere_with_models_conflicts(
    session: Session, admin: User, make_model
):
    sphere = create_sphere(session, admin, "Химия")
    make_model("Bolt", sphere_ids=[sphere.id])

    with pytest.raises(ConflictError, match="1 model"):
        delete_sphere(session, admin, sphere.id)


def test_delete_sphere(session: Session, admin: User):
    sphere = create_sphere(session, admin, "Химия")
    delete_sphere(session, admin, sphere.id)
    assert list_spheres(session) == []


def test_seed_default_spheres_is_idempotent(session: Session):
    created = seed_default_spheres(session)
    assert sorted(s.name for s in created) == sorted(DEFAULT_SPHERES)
    assert seed_default_spheres(session) == []


def test_remove_reserved_spheres(session: Session):
    session.add(Sphere(name="Все модели"))
    session.add(Sphere(name="Медицина"))
    session.commit()

    assert remove_reserved_spheres(session) == ["Все модели"]
    assert [s.name for s in list_spheres(session)] == ["Медицина"]


def test_create_project_with_models(session: Session, admin: User, make_model):
    bolt = make_model("Bolt")

    project = create_project(
        session, admin, "Plant", city="Kazan", model_ids=[bolt.id]
    )

    assert project.name == "Plant"
    assert project.city == "Kazan"
    assert [m.id for m in project.models] == [bolt.id]
    actions = [e.action for e in session.exec(select(LogEntry)).all()]
    assert "Project created: Plant" in actions


def test_project_names_are_unique_case_insensitively(session: Session, admin: User):
    create_project(session, admin, "Plant")
    with pytest.raises(ConflictError):
        create_project(session, admin, "plant")


def test_create_project_with_unknown_model(session: Session, admin: User):
    with pytest.raises(ValidationError, match="Unknown model"):
        create_project(session, admin, "Plant", model_ids=["missing"])
    assert list_projects(session) == []


def test_create_project_needs_permission(session: Session, programmer: User):
    with pytest.raises(ForbiddenError):
        create_project(session, programmer, "Plant")


def test_update_project(session: Session, admin: User, make_user):
    project = create_project(session, admin, "Plant")
    manager = make_user(Role.MANAGER)

    updated = update_project(session, manager, project.id, name="Refinery", city=" ")

    assert updated.name == "Refinery"
    assert updated.city is None


def test_update_missing_project(session: Session, admin: User):
    with pytest.raises(NotFoundError):
        update_project(session, admin, "missing", name="Refinery")


def test_delete_project_with_models_conflicts(
    session: Session, admin: User, make_model
):
    project = create_project(session, admin, "Plant")
    make_model("Bolt", project_ids=[project.id])

    with pytest.raises(ConflictError):
        delete_project(session, admin, project.id)

    empty = create_project(session, admin, "Empty")
    delete_project(session, admin, empty.id)
    assert [p.name for p in list_projects(session)] == ["Plant"]
