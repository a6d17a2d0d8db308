from ...config import Settings
from .base import AssetStore, StoredFile
from .local import LocalAssetStore
from .nextcloud import NextcloudAssetStore


def create_asset_store(settings: Settings) -> AssetStore:
    """Nextcloud when credentials are configured, the local directory otherwise."""
    if settings.nextcloud_configured:
        return NextcloudAssetStore(
            base_url=settings.nextcloud_url,  # type: ignore[arg-type]
            username=settings.nextcloud_admin_user,  # type: ignore[arg-type]
            password=settings.nextcloud_admin_password,  # type: ignore[arg-type]
            timeout=settings.nextcloud_timeout_seconds,
        )
    return LocalAssetStore(settings.local_uploads_dir)


__all__ = [
    "AssetStore",
    "LocalAssetStore",
    "NextcloudAssetStore",
    "StoredFile",
    "create_asset_store",
]
