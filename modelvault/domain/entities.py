"""Pure domain rules for catalogue entities, without infrastructure dependencies."""

import re
from dataclasses import dataclass, field
from typing import Final

from email_validator import EmailNotValidError, validate_email

from .constants import (
    ARCHIVE_EXTENSION,
    IMAGE_CONTENT_TYPES,
    MAX_DESCRIPTION_LENGTH,
    MAX_EMAIL_LENGTH,
    MAX_EMPLOYEE_NAME_LENGTH,
    MAX_PASSWORD_LENGTH,
    MAX_SPHERE_NAME_LENGTH,
    MAX_TITLE_LENGTH,
    MIN_PASSWORD_LENGTH,
    MIN_SCREENSHOTS,
    RESERVED_SPHERE_NAMES,
    TITLE_PATTERN,
)
from .exceptions import ValidationError

_UNSAFE_NAME_CHARS: Final = re.compile(r"[^A-Za-z0-9_-]+")
_URL_SCHEME: Final = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)
# Shell metacharacters and control characters
_UNSAFE_PATH: Final = re.compile(r"[|&;`$(){}\[\]\\\x00-\x1f\x7f-\x9f]")
MAX_ASSET_PATH_LENGTH: Final = 1000


def validate_entity_name(name: str, entity_type: str, max_length: int) -> str:
    """Validate a human-entered name and return it stripped.

    Raises:
        ValidationError: If name is empty, too long, or contains control characters
    """
    if not name or not name.strip():
        raise ValidationError(f"{entity_type.capitalize()} name cannot be empty")

    name = name.strip()
    if len(name) > max_length:
        raise ValidationError(
            f"{entity_type.capitalize()} name cannot be longer than {max_length} "
            + "characters"
        )

    for char in name:
        if ord(char) < 32 or ord(char) == 127:
            raise ValidationError(
                f"{entity_type.capitalize()} name cannot contain newlines, tabs, "
                + "or other control characters"
            )
    return name


def validate_model_title(title: str) -> str:
    title = validate_entity_name(title, "model", MAX_TITLE_LENGTH)
    if not TITLE_PATTERN.match(title):
        raise ValidationError(
            "Model name may only contain letters, digits, spaces and . , - _ ( ) : ;"
        )
    return title


def validate_description(description: str | None) -> str | None:
    if description is None:
        return None
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(
            f"Description cannot be longer than {MAX_DESCRIPTION_LENGTH} characters"
        )
    return description


def is_reserved_sphere_name(name: str) -> bool:
    return name.strip().casefold() in RESERVED_SPHERE_NAMES


def validate_sphere_name(name: str) -> str:
    name = validate_entity_name(name, "sphere", MAX_SPHERE_NAME_LENGTH)
    if is_reserved_sphere_name(name):
        raise ValidationError(f"'{name}' is a reserved sphere name")
    return name


def validate_employee_name(name: str) -> str:
    return validate_entity_name(name, "employee", MAX_EMPLOYEE_NAME_LENGTH)


def normalize_email(email: str) -> str:
    try:
        result = validate_email(email.strip(), check_deliverability=False)
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email address: {e}") from e
    email = result.normalized.lower()
    if len(email) > MAX_EMAIL_LENGTH:
        raise ValidationError(
            f"Email cannot be longer than {MAX_EMAIL_LENGTH} characters"
        )
    return email


def validate_password(password: str) -> str:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )
    if len(password) > MAX_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password cannot be longer than {MAX_PASSWORD_LENGTH} characters"
        )
    return password


def validate_archive_name(filename: str) -> None:
    if not filename.lower().endswith(ARCHIVE_EXTENSION):
        raise ValidationError("Model file must be a .zip archive")


def validate_screenshot(filename: str, content_type: str | None) -> None:
    if (content_type or "").lower() not in IMAGE_CONTENT_TYPES:
        raise ValidationError(
            f"Screenshot '{filename}' must be a JPEG, PNG, GIF, WEBP or BMP image"
        )


def validate_screenshot_count(count: int) -> None:
    if count < MIN_SCREENSHOTS:
        raise ValidationError(f"At least {MIN_SCREENSHOTS} screenshots are required")


def sanitize_name(name: str) -> str:
    """Reduce a display name to a folder-safe token."""
    return _UNSAFE_NAME_CHARS.sub("_", name)


def model_root_folder(title: str) -> str:
    return f"models/{sanitize_name(title)}"


def model_folder(title: str, version: int, screenshots: bool = False) -> str:
    """Folder holding one version's assets, e.g. ``models/Bolt/v1/screenshots``."""
    folder = f"{model_root_folder(title)}/v{version}"
    return f"{folder}/screenshots" if screenshots else folder


def sanitize_asset_path(path: str) -> str:
    """Normalize a client-supplied asset path to a relative POSIX path.

    Raises:
        ValidationError: If the path is empty, is a URL, or could escape the
            asset root
    """
    if not path or _URL_SCHEME.match(path) or _UNSAFE_PATH.search(path):
        raise ValidationError("Invalid asset path")
    if ".." in path or "//" in path.strip("/"):
        raise ValidationError("Invalid asset path")

    cleaned = path.strip("/")
    if not cleaned or len(cleaned) > MAX_ASSET_PATH_LENGTH:
        raise ValidationError("Invalid asset path")
    return cleaned


@dataclass
class ChangeSummary:
    """Human-readable list of field changes for the audit trail."""

    changes: list[str] = field(default_factory=list)
    fields: list[str] = field(default_factory=list)

    def add(self, field_name: str, label: str, old: object, new: object) -> None:
        self.fields.append(field_name)
        self.changes.append(f'{label}: "{old}" → "{new}"')

    def note(self, field_name: str, text: str) -> None:
        self.fields.append(field_name)
        self.changes.append(text)

    def __bool__(self) -> bool:
        return bool(self.changes)

    def render(self) -> str:
        return "; ".join(self.changes)
