"""Asset store contract shared by the Nextcloud and local backends.

Paths are relative to the store root and use ``/`` separators, e.g.
``models/Bolt/v1/screenshots/3f2a-front.png``. The database only ever holds
these relative paths.
"""

import mimetypes
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Protocol
from uuid import uuid4

from ...domain.entities import sanitize_name


@dataclass(frozen=True)
class StoredFile:
    content: bytes
    content_type: str
    filename: str


class AssetStore(Protocol):
    def store(
        self, folder: str, filename: str, content: bytes, content_type: str | None
    ) -> str:
        """Write a new file under ``folder`` and return its path."""
        ...

    def fetch(self, path: str) -> StoredFile: ...

    def list_images(self, folder: str) -> list[str]:
        """Image paths directly inside ``folder``; empty if it does not exist."""
        ...

    def delete(self, path: str) -> None: ...

    def delete_folder(self, folder: str) -> None: ...

    def ensure_folder(self, folder: str) -> None: ...

    def move_folder(self, source: str, destination: str) -> None: ...

    def close(self) -> None: ...


def unique_filename(filename: str) -> str:
    """Collision-free, folder-safe name that keeps the original extension."""
    original = PurePosixPath(filename.replace("\\", "/")).name
    suffix = PurePosixPath(original).suffix.lower()
    stem = sanitize_name(PurePosixPath(original).stem)[:60] or "file"
    return f"{uuid4().hex[:12]}-{stem}{suffix}"


def guess_content_type(path: str) -> str:
    content_type, _ = mimetypes.guess_type(path)
    return content_type or "application/octet-stream"


def is_image(content_type: str | None) -> bool:
    return bool(content_type) and content_type.split(";")[0].strip().startswith(
        "image/"
    )
