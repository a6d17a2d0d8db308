from datetime import datetime
from uuid import uuid4

from sqlmodel import JSON, Column, Field, Relationship, SQLModel

from ...domain.constants import (
    MAX_CITY_LENGTH,
    MAX_DESCRIPTION_LENGTH,
    MAX_EMAIL_LENGTH,
    MAX_EMPLOYEE_NAME_LENGTH,
    MAX_PROJECT_NAME_LENGTH,
    MAX_SPHERE_NAME_LENGTH,
    MAX_TITLE_LENGTH,
)
from ...domain.permissions import Role


def new_id() -> str:
    return uuid4().hex


class ModelProjectLink(SQLModel, table=True):  # type: ignore[call-arg]
    __tablename__ = "model_projects"

    model_id: str = Field(
        foreign_key="models.id", primary_key=True, ondelete="CASCADE"
    )
    project_id: str = Field(
        foreign_key="projects.id", primary_key=True, ondelete="CASCADE"
    )


class ModelSphereLink(SQLModel, table=True):  # type: ignore[call-arg]
    __tablename__ = "model_spheres"

    model_id: str = Field(
        foreign_key="models.id", primary_key=True, ondelete="CASCADE"
    )
    sphere_id: str = Field(
        foreign_key="spheres.id", primary_key=True, ondelete="CASCADE"
    )


class Sphere(SQLModel, table=True):  # type: ignore[call-arg]
    """Business domain a model belongs to, e.g. chemistry or construction."""

    __tablename__ = "spheres"

    id: str = Field(default_factory=new_id, primary_key=True)
    name: str = Field(unique=True, max_length=MAX_SPHERE_NAME_LENGTH)
    created_at: datetime = Field(default_factory=datetime.now)

    models: list["CatalogModel"] = Relationship(
        back_populates="spheres", link_model=ModelSphereLink
    )


class User(SQLModel, table=True):  # type: ignore[call-arg]
    __tablename__ = "users"

    id: str = Field(default_factory=new_id, primary_key=True)
    name: str = Field(max_length=MAX_EMPLOYEE_NAME_LENGTH)
    # Stored lower-cased
    email: str = Field(unique=True, index=True, max_length=MAX_EMAIL_LENGTH)
    password_hash: str
    role: Role = Field(default=Role.ARTIST)
    permissions: list[str] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    # Only ANALYST and ARTIST users keep a sphere
    sphere_id: str | None = Field(
        default=None, foreign_key="spheres.id", ondelete="SET NULL"
    )
    created_at: datetime = Field(default_factory=datetime.now)

    sphere: Sphere | None = Relationship()


class Project(SQLModel, table=True):  # type: ignore[call-arg]
    __tablename__ = "projects"

    id: str = Field(default_factory=new_id, primary_key=True)
    name: str = Field(unique=True, max_length=MAX_PROJECT_NAME_LENGTH)
    city: str | None = Field(default=None, max_length=MAX_CITY_LENGTH)
    created_at: datetime = Field(default_factory=datetime.now)

    models: list["CatalogModel"] = Relationship(
        back_populates="projects", link_model=ModelProjectLink
    )


class CatalogModel(SQLModel, table=True):  # type: ignore[call-arg]
    """A 3D model: one zip archive plus screenshots, stored by relative path."""

    __tablename__ = "models"

    id: str = Field(default_factory=new_id, primary_key=True)
    title: str = Field(max_length=MAX_TITLE_LENGTH)
    # casefolded title; SQL lower() ignores non-ASCII on SQLite
    title_key: str = Field(unique=True, index=True)
    description: str | None = Field(default=None, max_length=MAX_DESCRIPTION_LENGTH)
    file_url: str
    images: list[str] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    version: int = Field(default=1, ge=1)
    author_id: str = Field(foreign_key="users.id", index=True)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    # Deletion request. The three fields below are set iff marked_for_deletion.
    marked_for_deletion: bool = Field(default=False, index=True)
    marked_by_id: str | None = Field(
        default=None, foreign_key="users.id", ondelete="SET NULL"
    )
    marked_at: datetime | None = None
    deletion_comment: str | None = None

    author: User | None = Relationship(
        sa_relationship_kwargs={"foreign_keys": "[CatalogModel.author_id]"}
    )
    marked_by: User | None = Relationship(
        sa_relationship_kwargs={"foreign_keys": "[CatalogModel.marked_by_id]"}
    )
    projects: list[Project] = Relationship(
        back_populates="models",
        link_model=ModelProjectLink,
        sa_relationship_kwargs={"lazy": "selectin"},
    )
    spheres: list[Sphere] = Relationship(
        back_populates="models",
        link_model=ModelSphereLink,
        sa_relationship_kwargs={"lazy": "selectin"},
    )


class DeletedModel(SQLModel, table=True):  # type: ignore[call-arg]
    """Tombstone of a deleted model, kept until its assets are purged."""

    __tablename__ = "deleted_models"

    id: str = Field(default_factory=new_id, primary_key=True)
    original_model_id: str = Field(index=True)
    title: str
    description: str | None = None
    file_url: str | None = None
    images: list[str] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    author_name: str | None = None
    sphere_names: list[str] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    project_names: list[str] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    deletion_comment: str | None = None
    # Who asked for the deletion; the approving admin is on the log entry
    user_id: str | None = Field(
        default=None, foreign_key="users.id", ondelete="SET NULL"
    )
    created_at: datetime
    deleted_at: datetime = Field(default_factory=datetime.now, index=True)

    user: User | None = Relationship()


class LogEntry(SQLModel, table=True):  # type: ignore[call-arg]
    __tablename__ = "logs"

    id: str = Field(default_factory=new_id, primary_key=True)
    action: str
    # casefolded action; SQL lower() ignores non-ASCII on SQLite
    action_key: str = ""
    user_id: str | None = Field(
        default=None, foreign_key="users.id", ondelete="SET NULL", index=True
    )
    model_id: str | None = Field(
        default=None, foreign_key="models.id", ondelete="SET NULL"
    )
    created_at: datetime = Field(default_factory=datetime.now, index=True)

    user: User | None = Relationship()
    model: CatalogModel | None = Relationship()
