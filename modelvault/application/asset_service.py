"""Direct access to the asset store for signed-in users."""

from typing import Final

from ..domain.constants import ARCHIVE_EXTENSION, UPLOADS_FOLDER
from ..domain.entities import sanitize_asset_path
from ..domain.exceptions import ValidationError
from ..domain.permissions import Permission
from ..domain.policy import require, require_signed_in
from ..infrastructure.database.models import User
from ..infrastructure.storage import AssetStore, StoredFile
from ..logging_config import get_logger
from .model_service import UploadedFile
from .validation import validated

logger: Final = get_logger(__name__)


def upload_asset(store: AssetStore, actor: User | None, upload: UploadedFile) -> str:
    actor = require(actor, Permission.UPLOAD_MODELS)
    if not upload.data:
        raise ValidationError("No file provided")
    path = store.store(
        UPLOADS_FOLDER, upload.filename, upload.data, upload.content_type
    )
    logger.info("Asset uploaded", path=path, actor_id=actor.id)
    return path


def fetch_asset(store: AssetStore, actor: User | None, path: str) -> StoredFile:
    """Read one stored file. Model archives also need ``download_models``."""
    actor = require_signed_in(actor)
    path = validated("path", sanitize_asset_path, path)
    if path.lower().endswith(ARCHIVE_EXTENSION):
        require(actor, Permission.DOWNLOAD_MODELS)
    return store.fetch(path)


def list_folder_images(store: AssetStore, actor: User | None, folder: str) -> list[str]:
    require_signed_in(actor)
    folder = validated("folder", sanitize_asset_path, folder)
    return store.list_images(folder)
