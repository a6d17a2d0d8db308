from typing import Final

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlmodel import Session

from ..application.deletion_service import DeletionWorkflow
from ..application.model_service import (
    ModelChanges,
    NewModel,
    UploadedFile,
    create_model,
    get_model,
    list_models,
    list_screenshots,
    title_exists,
    update_model,
)
from ..domain.deletion import DeletionState
from ..domain.permissions import Permission, PublicAction
from ..domain.policy import require
from ..infrastructure.database.database import get_session
from ..infrastructure.database.models import User
from ..infrastructure.storage import AssetStore
from .dependencies import (
    get_asset_store,
    get_current_user,
    require_admin_user,
    require_permission,
    require_user,
)
from .schemas import (
    DeletionDecision,
    DeletionRequest,
    DeletionStateResponse,
    FileListResponse,
    ModelResponse,
    ModelUpdateResponse,
    TitleCheckResponse,
)

models_router: Final = APIRouter(prefix="/models", tags=["models"])


def _read_upload(upload: UploadFile) -> UploadedFile:
    return UploadedFile(
        filename=upload.filename or "upload",
        content_type=upload.content_type,
        data=upload.file.read(),
    )


def _ids(values: list[str] | None) -> list[str] | None:
    """Form lists: absent means unchanged, a single empty value clears."""
    if values is None:
        return None
    return [value for value in values if value]


@models_router.get("", response_model=list[ModelResponse], summary="List models")
def api_list_models(
    project_id: str | None = None,
    sphere_id: str | None = None,
    marked_for_deletion: bool | None = None,
    include_author: bool = False,
    include_projects: bool = False,
    include_marked_by: bool = False,
    session: Session = Depends(get_session),
    _user: User = Depends(require_user),
) -> list[ModelResponse]:
    """Newest first, optionally filtered by project, sphere or deletion mark."""
    models = list_models(session, project_id, sphere_id, marked_for_deletion)
    return [
        ModelResponse.from_model(
            model,
            include_author=include_author,
            include_projects=include_projects,
            include_marked_by=include_marked_by,
        )
        for model in models
    ]


@models_router.get(
    "/check-title",
    response_model=TitleCheckResponse,
    summary="Check whether a title is taken",
)
def api_check_title(
    title: str = Query(...),
    exclude_id: str | None = None,
    session: Session = Depends(get_session),
    user: User | None = Depends(get_current_user),
) -> TitleCheckResponse:
    require(user, PublicAction.CHECK_TITLE)
    return TitleCheckResponse(exists=title_exists(session, title, exclude_id))


@models_router.post(
    "/upload",
    response_model=ModelResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a new model",
)
def api_upload_model(
    title: str = Form(...),
    description: str | None = Form(None),
    project_ids: list[str] = Form([]),
    sphere_ids: list[str] = Form([]),
    version: int = Form(1),
    zip_file: UploadFile = File(...),
    screenshots: list[UploadFile] = File(...),
    session: Session = Depends(get_session),
    store: AssetStore = Depends(get_asset_store),
    user: User = Depends(require_permission(Permission.UPLOAD_MODELS)),
) -> ModelResponse:
    """Store the archive and at least two screenshots, then create the model."""
    model = create_model(
        session,
        store,
        user,
        NewModel(
            title=title,
            description=description,
            zip_file=_read_upload(zip_file),
            screenshots=[_read_upload(upload) for upload in screenshots],
            project_ids=_ids(project_ids) or [],
            sphere_ids=_ids(sphere_ids) or [],
            version=version,
        ),
    )
    return ModelResponse.from_model(model)


@models_router.post(
    "/update/{model_id}",
    response_model=ModelUpdateResponse,
    summary="Partially update a model",
)
def api_update_model(
    model_id: str,
    title: str | None = Form(None),
    description: str | None = Form(None),
    author_id: str | None = Form(None),
    project_ids: list[str] | None = Form(None),
    sphere_ids: list[str] | None = Form(None),
    removed_screenshots: list[str] = Form([]),
    zip_file: UploadFile | None = File(None),
    screenshots: list[UploadFile] = File([]),
    session: Session = Depends(get_session),
    store: AssetStore = Depends(get_asset_store),
    user: User = Depends(require_user),
) -> ModelUpdateResponse:
    """Each changed field needs ``edit_models`` or its narrower permission."""
    model, summary = update_model(
        session,
        store,
        user,
        model_id,
        ModelChanges(
            title=title,
            description=description,
            author_id=author_id or None,
            project_ids=_ids(project_ids),
            sphere_ids=_ids(sphere_ids),
            zip_file=_read_upload(zip_file) if zip_file else None,
            screenshots=[_read_upload(upload) for upload in screenshots],
            removed_screenshots=[path for path in removed_screenshots if path],
        ),
    )
    return ModelUpdateResponse(
        model=ModelResponse.from_model(model), changes=summary.changes
    )


@models_router.get("/{model_id}", response_model=ModelResponse, summary="Get a model")
def api_get_model(
    model_id: str,
    session: Session = Depends(get_session),
    _user: User = Depends(require_user),
) -> ModelResponse:
    return ModelResponse.from_model(get_model(session, model_id))


@models_router.get(
    "/{model_id}/screenshots",
    response_model=FileListResponse,
    summary="List a model version's screenshots in the asset store",
)
def api_list_screenshots(
    model_id: str,
    version: int | None = Query(None, ge=1),
    session: Session = Depends(get_session),
    store: AssetStore = Depends(get_asset_store),
    _user: User = Depends(require_user),
) -> FileListResponse:
    return FileListResponse(
        files=list_screenshots(session, store, model_id, version)
    )


@models_router.put(
    "/{model_id}",
    response_model=DeletionStateResponse,
    summary="Request deletion of a model",
)
def api_request_deletion(
    model_id: str,
    body: DeletionRequest | None = None,
    session: Session = Depends(get_session),
    store: AssetStore = Depends(get_asset_store),
    user: User = Depends(require_permission(Permission.DELETE_MODELS)),
) -> DeletionStateResponse:
    """Administrators delete straight away; other users leave a request."""
    state = DeletionWorkflow(session, store).request_deletion(
        model_id, user, body.comment if body else None
    )
    return DeletionStateResponse(
        id=model_id, state=state.value, message="Deletion request accepted"
    )


@models_router.delete(
    "/{model_id}",
    response_model=DeletionStateResponse,
    summary="Approve or reject a deletion request",
)
def api_decide_deletion(
    model_id: str,
    decision: DeletionDecision,
    session: Session = Depends(get_session),
    store: AssetStore = Depends(get_asset_store),
    user: User = Depends(require_admin_user),
) -> DeletionStateResponse:
    workflow = DeletionWorkflow(session, store)
    if decision.approve:
        tombstone = workflow.confirm_purge(model_id, user)
        return DeletionStateResponse(
            id=tombstone.id,
            state=DeletionState.PURGED_PENDING.value,
            message="Model moved to deleted models",
        )
    state = workflow.restore(model_id, user)
    return DeletionStateResponse(
        id=model_id, state=state.value, message="Deletion request rejected"
    )
