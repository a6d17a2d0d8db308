"""Filesystem asset store used when Nextcloud is not configured."""

import shutil
from pathlib import Path
from typing import Final

from ...domain.exceptions import NotFoundError, UpstreamError, ValidationError
from ...logging_config import get_logger
from .base import StoredFile, guess_content_type, is_image, unique_filename

logger: Final = get_logger(__name__)


class LocalAssetStore:
    def __init__(self, root: str | Path):
        self._root = Path(root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)

    def close(self) -> None:
        pass

    def _resolve(self, path: str) -> Path:
        target = (self._root / path.strip("/")).resolve()
        if not target.is_relative_to(self._root):
            raise ValidationError("Invalid asset path")
        return target

    def ensure_folder(self, folder: str) -> None:
        try:
            self._resolve(folder).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise UpstreamError(f"Cannot create folder '{folder}': {e}") from e

    def store(
        self, folder: str, filename: str, content: bytes, content_type: str | None
    ) -> str:
        self.ensure_folder(folder)
        path = f"{folder.strip('/')}/{unique_filename(filename)}"
        try:
            self._resolve(path).write_bytes(content)
        except OSError as e:
            raise UpstreamError(f"Cannot write '{path}': {e}") from e
        logger.info("Asset stored", path=path, size=len(content))
        return path

    def fetch(self, path: str) -> StoredFile:
        target = self._resolve(path)
        if not target.is_file():
            raise NotFoundError(f"Asset '{path}' not found")
        return StoredFile(
            content=target.read_bytes(),
            content_type=guess_content_type(path),
            filename=target.name,
        )

    def list_images(self, folder: str) -> list[str]:
        target = self._resolve(folder)
        if not target.is_dir():
            return []
        return sorted(
            entry.relative_to(self._root).as_posix()
            for entry in target.iterdir()
            if entry.is_file() and is_image(guess_content_type(entry.name))
        )

    def delete(self, path: str) -> None:
        target = self._resolve(path)
        try:
            target.unlink()
        except FileNotFoundError as e:
            raise NotFoundError(f"Asset '{path}' not found") from e
        except OSError as e:
            raise UpstreamError(f"Cannot delete '{path}': {e}") from e

    def delete_folder(self, folder: str) -> None:
        target = self._resolve(folder)
        if not target.is_dir():
            raise NotFoundError(f"Folder '{folder}' not found")
        try:
            shutil.rmtree(target)
        except OSError as e:
            raise UpstreamError(f"Cannot delete folder '{folder}': {e}") from e

    def move_folder(self, source: str, destination: str) -> None:
        src = self._resolve(source)
        dst = self._resolve(destination)
        if not src.is_dir():
            raise NotFoundError(f"Folder '{source}' not found")
        if dst.exists():
            raise UpstreamError(f"Folder '{destination}' already exists")
        dst.parent.mkdir(parents=True, exist_ok=True)
        src.rename(dst)
