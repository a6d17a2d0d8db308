import math
from dataclasses import asdict
from typing import Final

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from ..application.deletion_service import DeletionWorkflow
from ..domain.constants import DELETED_MODELS_PAGE_SIZE
from ..infrastructure.database.database import get_session
from ..infrastructure.database.models import User
from ..infrastructure.storage import AssetStore
from .dependencies import get_asset_store, require_admin_user, require_user
from .schemas import (
    DeletedModelPage,
    DeletedModelResponse,
    PurgeAllResponse,
    PurgeReportResponse,
)

deleted_models_router: Final = APIRouter(
    prefix="/deleted-models", tags=["deleted-models"]
)


@deleted_models_router.get(
    "", response_model=DeletedModelPage, summary="List deleted models"
)
def api_list_deleted_models(
    page: int = Query(1, ge=1),
    limit: int = Query(DELETED_MODELS_PAGE_SIZE, ge=1, le=100),
    session: Session = Depends(get_session),
    store: AssetStore = Depends(get_asset_store),
    user: User = Depends(require_user),
) -> DeletedModelPage:
    """Tombstones, most recently deleted first."""
    rows, total = DeletionWorkflow(session, store).list_deleted(user, page, limit)
    return DeletedModelPage(
        items=[DeletedModelResponse.from_tombstone(row) for row in rows],
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit),
    )


@deleted_models_router.delete(
    "", response_model=PurgeAllResponse, summary="Purge every deleted model"
)
def api_purge_all(
    session: Session = Depends(get_session),
    store: AssetStore = Depends(get_asset_store),
    user: User = Depends(require_admin_user),
) -> PurgeAllResponse:
    reports = DeletionWorkflow(session, store).finalize_all(user)
    return PurgeAllResponse(
        purged=len(reports),
        reports=[PurgeReportResponse(**asdict(report)) for report in reports],
    )


@deleted_models_router.get(
    "/{deleted_id}",
    response_model=DeletedModelResponse,
    summary="Get a deleted model",
)
def api_get_deleted_model(
    deleted_id: str,
    session: Session = Depends(get_session),
    store: AssetStore = Depends(get_asset_store),
    user: User = Depends(require_user),
) -> DeletedModelResponse:
    tombstone = DeletionWorkflow(session, store).get_deleted(deleted_id, user)
    return DeletedModelResponse.from_tombstone(tombstone)


@deleted_models_router.delete(
    "/{deleted_id}",
    response_model=PurgeReportResponse,
    summary="Permanently delete a model and its assets",
)
def api_purge_deleted_model(
    deleted_id: str,
    session: Session = Depends(get_session),
    store: AssetStore = Depends(get_asset_store),
    user: User = Depends(require_admin_user),
) -> PurgeReportResponse:
    """Assets that cannot be removed are reported; the tombstone goes anyway."""
    report = DeletionWorkflow(session, store).finalize_purge(deleted_id, user)
    return PurgeReportResponse(**asdict(report))
