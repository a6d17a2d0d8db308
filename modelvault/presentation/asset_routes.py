from typing import Final
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile, status

from ..application.asset_service import fetch_asset, list_folder_images, upload_asset
from ..application.model_service import UploadedFile
from ..domain.permissions import Permission
from ..infrastructure.database.models import User
from ..infrastructure.storage import AssetStore
from .dependencies import get_asset_store, require_permission, require_user
from .schemas import AssetUploadResponse, FileListResponse

assets_router: Final = APIRouter(prefix="/assets", tags=["assets"])


@assets_router.post(
    "/upload",
    response_model=AssetUploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a single file to the asset store",
)
def api_upload_asset(
    file: UploadFile = File(...),
    store: AssetStore = Depends(get_asset_store),
    user: User = Depends(require_permission(Permission.UPLOAD_MODELS)),
) -> AssetUploadResponse:
    path = upload_asset(
        store,
        user,
        UploadedFile(
            filename=file.filename or "upload",
            content_type=file.content_type,
            data=file.file.read(),
        ),
    )
    return AssetUploadResponse(path=path)


@assets_router.get("/file", summary="Download a stored file")
def api_fetch_asset(
    path: str = Query(..., description="Path inside the asset store"),
    store: AssetStore = Depends(get_asset_store),
    user: User = Depends(require_user),
) -> Response:
    stored = fetch_asset(store, user, path)
    disposition = "attachment" if stored.filename.endswith(".zip") else "inline"
    return Response(
        content=stored.content,
        media_type=stored.content_type,
        headers={
            "Content-Disposition": (
                f"{disposition}; filename*=UTF-8''{quote(stored.filename)}"
            ),
            "Cache-Control": "private, max-age=3600",
        },
    )


@assets_router.get(
    "/images",
    response_model=FileListResponse,
    summary="List images in an asset folder",
)
def api_list_images(
    folder: str = Query(..., description="Folder inside the asset store"),
    store: AssetStore = Depends(get_asset_store),
    user: User = Depends(require_user),
) -> FileListResponse:
    return FileListResponse(files=list_folder_images(store, user, folder))
