"""Request and response models for the JSON API."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from ..domain.constants import (
    MAX_CITY_LENGTH,
    MAX_DESCRIPTION_LENGTH,
    MAX_PROJECT_NAME_LENGTH,
    MAX_SPHERE_NAME_LENGTH,
)
from ..domain.permissions import Role
from ..infrastructure.database.models import (
    CatalogModel,
    DeletedModel,
    Project,
    User,
)


# Request Models
class LoginRequest(BaseModel):
    email: str = Field(description="Login email, matched case-insensitively")
    password: str = Field(description="Plain-text password")


class EmployeeCreate(BaseModel):
    """Request model for creating an employee."""

    name: str = Field(description="Display name", examples=["Ivan Petrov"])
    email: EmailStr = Field(description="Unique login email")
    password: str = Field(description="At least 6 characters")
    role: Role = Field(default=Role.ARTIST, description="Employee role")
    permissions: list[str] | None = Field(
        default=None,
        description="Explicit permissions; the role's defaults when omitted",
    )
    sphere_id: str | None = Field(
        default=None, description="Sphere, kept only for ANALYST and ARTIST"
    )


class EmployeeUpdate(BaseModel):
    """Partial update; omitted fields stay unchanged."""

    name: str | None = None
    email: EmailStr | None = None
    password: str | None = Field(
        default=None, description="New password; empty keeps the current one"
    )
    role: Role | None = None
    permissions: list[str] | None = None
    sphere_id: str | None = None


class DeletionRequest(BaseModel):
    comment: str | None = Field(
        default=None,
        max_length=MAX_DESCRIPTION_LENGTH,
        description="Why the model should be deleted",
    )


class DeletionDecision(BaseModel):
    approve: bool = Field(
        description="True purges the model, false rejects the deletion request"
    )


class ProjectCreate(BaseModel):
    name: str = Field(min_length=1, max_length=MAX_PROJECT_NAME_LENGTH)
    city: str | None = Field(default=None, max_length=MAX_CITY_LENGTH)
    model_ids: list[str] | None = Field(
        default=None, description="Models to attach to the project"
    )


class ProjectUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=MAX_PROJECT_NAME_LENGTH)
    city: str | None = Field(default=None, max_length=MAX_CITY_LENGTH)
    model_ids: list[str] | None = Field(
        default=None, description="Replaces the attached models when given"
    )


class SphereCreate(BaseModel):
    name: str = Field(min_length=1, max_length=MAX_SPHERE_NAME_LENGTH)


# Response Models
class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str
    role: Role


class SessionUser(UserSummary):
    permissions: list[str]
    sphere_id: str | None


class EmployeeResponse(SessionUser):
    sphere_name: str | None = None
    created_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "EmployeeResponse":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            permissions=list(user.permissions),
            sphere_id=user.sphere_id,
            sphere_name=user.sphere.name if user.sphere else None,
            created_at=user.created_at,
        )


class SphereResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    created_at: datetime


class ProjectRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    city: str | None


class ProjectResponse(ProjectRef):
    created_at: datetime
    model_ids: list[str] = Field(description="Ids of the attached models")

    @classmethod
    def from_project(cls, project: Project) -> "ProjectResponse":
        return cls(
            id=project.id,
            name=project.name,
            city=project.city,
            created_at=project.created_at,
            model_ids=[model.id for model in project.models],
        )


class ModelResponse(BaseModel):
    """A catalogue model. Optional relations are null unless requested."""

    id: str
    title: str
    description: str | None
    file_url: str = Field(description="Archive path inside the asset store")
    images: list[str] = Field(description="Screenshot paths, in display order")
    version: int
    author_id: str
    created_at: datetime
    updated_at: datetime
    marked_for_deletion: bool
    marked_by_id: str | None
    marked_at: datetime | None
    deletion_comment: str | None
    spheres: list[SphereResponse]
    projects: list[ProjectRef] | None = None
    author: UserSummary | None = None
    marked_by: UserSummary | None = None

    @classmethod
    def from_model(
        cls,
        model: CatalogModel,
        include_author: bool = True,
        include_projects: bool = True,
        include_marked_by: bool = True,
    ) -> "ModelResponse":
        author = model.author if include_author else None
        marked_by = model.marked_by if include_marked_by else None
        return cls(
            id=model.id,
            title=model.title,
            description=model.description,
            file_url=model.file_url,
            images=list(model.images),
            version=model.version,
            author_id=model.author_id,
            created_at=model.created_at,
            updated_at=model.updated_at,
            marked_for_deletion=model.marked_for_deletion,
            marked_by_id=model.marked_by_id,
            marked_at=model.marked_at,
            deletion_comment=model.deletion_comment,
            spheres=[SphereResponse.model_validate(s) for s in model.spheres],
            projects=(
                [ProjectRef.model_validate(p) for p in model.projects]
                if include_projects
                else None
            ),
            author=UserSummary.model_validate(author) if author else None,
            marked_by=UserSummary.model_validate(marked_by) if marked_by else None,
        )


class ModelUpdateResponse(BaseModel):
    model: ModelResponse
    changes: list[str] = Field(description="Human-readable list of changes")


class TitleCheckResponse(BaseModel):
    exists: bool


class FileListResponse(BaseModel):
    files: list[str]


class DeletionStateResponse(BaseModel):
    id: str
    state: str = Field(description="Deletion state after the request")
    message: str


class DeletedModelResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    original_model_id: str
    title: str
    description: str | None
    file_url: str | None
    images: list[str]
    author_name: str | None
    sphere_names: list[str]
    project_names: list[str]
    deletion_comment: str | None
    user: UserSummary | None = Field(description="Who requested the deletion")
    created_at: datetime
    deleted_at: datetime

    @classmethod
    def from_tombstone(cls, tombstone: DeletedModel) -> "DeletedModelResponse":
        return cls.model_validate(tombstone)


class DeletedModelPage(BaseModel):
    items: list[DeletedModelResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class PurgeReportResponse(BaseModel):
    deleted_model_id: str
    title: str
    deleted: list[str]
    missing: list[str]
    failed: list[str]
    folder_removed: bool


class PurgeAllResponse(BaseModel):
    purged: int
    reports: list[PurgeReportResponse]


class LogEntryResponse(BaseModel):
    id: str
    action: str
    created_at: datetime
    user: UserSummary | None
    model_id: str | None
    deleted_model: DeletedModelResponse | None = Field(
        default=None, description="Tombstone for model deletion entries"
    )


class LogPageResponse(BaseModel):
    logs: list[LogEntryResponse]
    total_pages: int
    current_page: int
    total_count: int


class AssetUploadResponse(BaseModel):
    path: str = Field(description="Path of the stored file inside the asset store")


class MessageResponse(BaseModel):
    message: str
