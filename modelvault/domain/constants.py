"""Domain business rules and constants."""

import re
from typing import Final

# Users
MAX_EMPLOYEE_NAME_LENGTH: Final = 50
MAX_EMAIL_LENGTH: Final = 50
MIN_PASSWORD_LENGTH: Final = 6
MAX_PASSWORD_LENGTH: Final = 50

# Models
MAX_TITLE_LENGTH: Final = 50
MAX_DESCRIPTION_LENGTH: Final = 5000
MIN_SCREENSHOTS: Final = 2
TITLE_PATTERN: Final = re.compile(r"^[a-zA-Zа-яА-ЯёЁ0-9\s.,\-_():;]*$")
ARCHIVE_EXTENSION: Final = ".zip"
IMAGE_CONTENT_TYPES: Final = frozenset(
    {
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/gif",
        "image/webp",
        "image/bmp",
    }
)

# Projects and spheres
MAX_PROJECT_NAME_LENGTH: Final = 50
MAX_CITY_LENGTH: Final = 50
MAX_SPHERE_NAME_LENGTH: Final = 100

# UI filter labels, never stored as real spheres
RESERVED_SPHERE_NAMES: Final = frozenset({"все модели", "без сферы"})

DEFAULT_SPHERES: Final = (
    "Строительство",
    "Химия",
    "Промышленность",
    "Медицина",
    "Другое",
)

# Audit log
LOG_PAGE_SIZE: Final = 20
DELETED_MODELS_PAGE_SIZE: Final = 20

# Standalone asset uploads
UPLOADS_FOLDER: Final = "3D_Models"
