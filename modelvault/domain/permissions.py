"""Roles and the closed set of permission strings."""

from enum import StrEnum
from typing import Final


class Role(StrEnum):
    ADMIN = "ADMIN"
    ANALYST = "ANALYST"
    ARTIST = "ARTIST"
    PROGRAMMER = "PROGRAMMER"
    MANAGER = "MANAGER"


class Permission(StrEnum):
    MANAGE_USERS = "manage_users"
    CREATE_PROJECTS = "create_projects"
    EDIT_PROJECTS = "edit_projects"
    UPLOAD_MODELS = "upload_models"
    DELETE_MODELS = "delete_models"
    EDIT_MODELS = "edit_models"
    EDIT_MODEL_DESCRIPTION = "edit_model_description"
    EDIT_MODEL_SPHERE = "edit_model_sphere"
    EDIT_MODEL_SCREENSHOTS = "edit_model_screenshots"
    DOWNLOAD_MODELS = "download_models"
    ADD_SPHERE = "add_sphere"


class PublicAction(StrEnum):
    """Actions any caller may perform, signed in or not."""

    CHECK_TITLE = "check_title"


# Roles whose users belong to a sphere
SPHERE_SCOPED_ROLES: Final = frozenset({Role.ANALYST, Role.ARTIST})

DEFAULT_ROLE_PERMISSIONS: Final[dict[Role, tuple[Permission, ...]]] = {
    Role.ADMIN: (
        Permission.MANAGE_USERS,
        Permission.CREATE_PROJECTS,
        Permission.DELETE_MODELS,
        Permission.UPLOAD_MODELS,
        Permission.EDIT_MODELS,
        Permission.DOWNLOAD_MODELS,
    ),
    Role.ARTIST: (
        Permission.UPLOAD_MODELS,
        Permission.DELETE_MODELS,
        Permission.EDIT_MODELS,
        Permission.DOWNLOAD_MODELS,
    ),
    Role.PROGRAMMER: (Permission.DOWNLOAD_MODELS,),
    Role.MANAGER: (
        Permission.EDIT_MODEL_DESCRIPTION,
        Permission.DOWNLOAD_MODELS,
        Permission.CREATE_PROJECTS,
        Permission.EDIT_PROJECTS,
    ),
    Role.ANALYST: (
        Permission.EDIT_MODEL_DESCRIPTION,
        Permission.DOWNLOAD_MODELS,
        Permission.CREATE_PROJECTS,
        Permission.EDIT_PROJECTS,
    ),
}
