"""Catalogue use cases: upload, partial edit, lookup and screenshot listing."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Final

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from ..domain.entities import (
    ChangeSummary,
    model_folder,
    model_root_folder,
    validate_archive_name,
    validate_description,
    validate_model_title,
    validate_screenshot,
    validate_screenshot_count,
)
from ..domain.exceptions import (
    ConflictError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from ..domain.permissions import Permission
from ..domain.policy import require, require_any, require_signed_in
from ..infrastructure.database.models import CatalogModel, User
from ..infrastructure.database.repositories import (
    DeletedModelRepository,
    ModelRepository,
    ProjectRepository,
    SphereRepository,
    UserRepository,
    title_key,
)
from ..infrastructure.storage import AssetStore
from ..logging_config import get_logger
from ..logging_utils import log_database_operation
from ..metrics import record_model_updated, record_model_uploaded
from .audit_service import AuditLogRecorder
from .validation import require_ids_exist, validated

logger: Final = get_logger(__name__)


@dataclass
class UploadedFile:
    filename: str
    content_type: str | None
    data: bytes


@dataclass
class NewModel:
    title: str
    zip_file: UploadedFile
    screenshots: list[UploadedFile]
    description: str | None = None
    project_ids: list[str] = field(default_factory=list)
    sphere_ids: list[str] = field(default_factory=list)
    version: int = 1


@dataclass
class ModelChanges:
    """Partial update. ``None`` means "leave as is"."""

    title: str | None = None
    description: str | None = None
    author_id: str | None = None
    project_ids: list[str] | None = None
    sphere_ids: list[str] | None = None
    zip_file: UploadedFile | None = None
    screenshots: list[UploadedFile] = field(default_factory=list)
    removed_screenshots: list[str] = field(default_factory=list)


def list_models(
    session: Session,
    project_id: str | None = None,
    sphere_id: str | None = None,
    marked_for_deletion: bool | None = None,
) -> list[CatalogModel]:
    return ModelRepository(session).find_all(
        project_id=project_id,
        sphere_id=sphere_id,
        marked_for_deletion=marked_for_deletion,
    )


def get_model(session: Session, model_id: str) -> CatalogModel:
    model = ModelRepository(session).find_by_id(model_id)
    if model is None:
        raise NotFoundError(f"Model {model_id} not found")
    return model


def title_exists(session: Session, title: str, exclude_id: str | None = None) -> bool:
    """Case-insensitive title lookup used by the upload form."""
    if not title.strip():
        return False
    return ModelRepository(session).title_taken(title, exclude_id=exclude_id)


def _store_files(
    store: AssetStore, folder: str, files: Sequence[UploadedFile], stored: list[str]
) -> list[str]:
    """Store ``files`` under ``folder``, appending each new path to ``stored``."""
    paths = []
    for upload in files:
        path = store.store(folder, upload.filename, upload.data, upload.content_type)
        stored.append(path)
        paths.append(path)
    return paths


def _discard_assets(store: AssetStore, paths: Sequence[str]) -> None:
    """Best-effort removal of assets that no row references any more."""
    for path in paths:
        try:
            store.delete(path)
        except (NotFoundError, UpstreamError) as e:
            logger.warning(
                "Could not remove orphaned asset", path=path, error=e.message
            )


def _commit_model(
    session: Session, store: AssetStore, model: CatalogModel, new_paths: list[str]
) -> None:
    # rollback() reloads the old title
    title = model.title
    session.add(model)
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        _discard_assets(store, new_paths)
        raise ConflictError(f"A model named '{title}' already exists") from e
    session.refresh(model)


def create_model(
    session: Session, store: AssetStore, actor: User | None, new: NewModel
) -> CatalogModel:
    """Validate, store the archive and screenshots, then insert the row.

    Asset-store failures abort the upload and remove whatever was already
    stored.
    """
    actor = require(actor, Permission.UPLOAD_MODELS)

    title = validated("title", validate_model_title, new.title)
    description = validated("description", validate_description, new.description)
    validated("zip_file", validate_archive_name, new.zip_file.filename)
    validated("screenshots", validate_screenshot_count, len(new.screenshots))
    for screenshot in new.screenshots:
        validate_screenshot(screenshot.filename, screenshot.content_type)
    if new.version < 1:
        raise ValidationError("Version must be a positive number")

    repo = ModelRepository(session)
    if repo.title_taken(title):
        raise ConflictError(f"A model named '{title}' already exists")

    projects = ProjectRepository(session).find_by_ids(new.project_ids)
    require_ids_exist("project", new.project_ids, projects)
    spheres = SphereRepository(session).find_by_ids(new.sphere_ids)
    require_ids_exist("sphere", new.sphere_ids, spheres)

    stored: list[str] = []
    try:
        file_url = _store_files(
            store, model_folder(title, new.version), [new.zip_file], stored
        )[0]
        images = _store_files(
            store,
            model_folder(title, new.version, screenshots=True),
            new.screenshots,
            stored,
        )
    except UpstreamError:
        _discard_assets(store, stored)
        raise

    model = CatalogModel(
        title=title,
        title_key=title_key(title),
        description=description,
        file_url=file_url,
        images=images,
        version=new.version,
        author_id=actor.id,
        projects=projects,
        spheres=spheres,
    )
    _commit_model(session, store, model, stored)

    log_database_operation("create", "models", model_id=model.id)
    record_model_uploaded(len(images))
    logger.info("Model uploaded", model_id=model.id, actor_id=actor.id)
    AuditLogRecorder(session).record(
        f"Model uploaded: {title}", user_id=actor.id, model_id=model.id
    )
    return model


def _description_changed(model: CatalogModel, changes: ModelChanges) -> bool:
    if changes.description is None:
        return False
    # An empty form field clears the description
    return (changes.description or None) != model.description

def _check_edit_permissions(
    actor: User, model: CatalogModel, changes: ModelChanges
) -> None:
    """Every changed field needs edit_models or its narrower permission."""
    if changes.title is not None and changes.title.strip() != model.title:
        require(actor, Permission.EDIT_MODELS)
    if changes.author_id is not None and changes.author_id != model.author_id:
        require(actor, Permission.EDIT_MODELS)
    if changes.project_ids is not None and set(changes.project_ids) != {
        project.id for project in model.projects
    }:
        require(actor, Permission.EDIT_MODELS)
    if changes.zip_file is not None:
        require(actor, Permission.EDIT_MODELS)
    if _description_changed(model, changes):
        require_any(
            actor, Permission.EDIT_MODELS, Permission.EDIT_MODEL_DESCRIPTION
        )
    if changes.sphere_ids is not None and set(changes.sphere_ids) != {
        sphere.id for sphere in model.spheres
    }:
        require_any(actor, Permission.EDIT_MODELS, Permission.EDIT_MODEL_SPHERE)
    if changes.screenshots or changes.removed_screenshots:
        require_any(
            actor, Permission.EDIT_MODELS, Permission.EDIT_MODEL_SCREENSHOTS
        )


def _rename_folder(
    session: Session, store: AssetStore, model: CatalogModel, new_title: str
) -> bool:
    """Move the model's folder to match a new title and rewrite stored paths.

    Folders shared with other models or with tombstones awaiting purge
    (titles that sanitize to the same name) are left where they are; the
    stored paths keep working either way.
    Returns whether the folder was moved.
    """
    old_root = model_root_folder(model.title)
    new_root = model_root_folder(new_title)
    if old_root == new_root:
        return False

    models = ModelRepository(session)
    tombstones = DeletedModelRepository(session)
    for folder in (old_root, new_root):
        if models.folder_in_use(folder, exclude_id=model.id) or (
            tombstones.folder_in_use(folder)
        ):
            logger.info("Model folder shared, not renamed", folder=folder)
            return False

    try:
        store.move_folder(old_root, new_root)
    except NotFoundError:
        logger.info("Model folder missing, nothing to rename", folder=old_root)
        return False

    def moved(path: str) -> str:
        if path.startswith(old_root + "/"):
            return new_root + path[len(old_root) :]
        return path

    model.file_url = moved(model.file_url)
    model.images = [moved(path) for path in model.images]
    return True


def _move_folder_back(store: AssetStore, new_title: str, old_title: str) -> None:
    """Undo a rename whose database update did not go through."""
    source = model_root_folder(new_title)
    destination = model_root_folder(old_title)
    try:
        store.move_folder(source, destination)
    except (NotFoundError, UpstreamError) as e:
        logger.error(
            "Model folder could not be moved back",
            source=source,
            destination=destination,
            error=e.message,
        )

def update_model(
    session: Session,
    store: AssetStore,
    actor: User | None,
    model_id: str,
    changes: ModelChanges,
) -> tuple[CatalogModel, ChangeSummary]:
    """Apply a partial update and return the model with a summary of changes.

    A replaced archive bumps the version; new files go into the new version's
    folder. Replaced or removed files are deleted from the store only after
    the row has been committed.
    """
    actor = require_signed_in(actor)
    model = get_model(session, model_id)
    _check_edit_permissions(actor, model, changes)

    summary = ChangeSummary()
    repo = ModelRepository(session)

    new_title = model.title
    if changes.title is not None and changes.title.strip() != model.title:
        new_title = validated("title", validate_model_title, changes.title)
        if repo.title_taken(new_title, exclude_id=model.id):
            raise ConflictError(f"A model named '{new_title}' already exists")

    if _description_changed(model, changes):
        description = validated(
            "description", validate_description, changes.description
        )
        summary.note("description", "Description updated")
        model.description = description or None

    if changes.author_id is not None and changes.author_id != model.author_id:
        author = UserRepository(session).find_by_id(changes.author_id)
        if author is None:
            raise ValidationError(f"Unknown author id: {changes.author_id}")
        old_author = model.author.name if model.author else model.author_id
        summary.add("author", "Author", old_author, author.name)
        model.author_id = author.id

    if changes.project_ids is not None:
        current = {project.id for project in model.projects}
        if set(changes.project_ids) != current:
            projects = ProjectRepository(session).find_by_ids(changes.project_ids)
            require_ids_exist("project", changes.project_ids, projects)
            summary.add(
                "projects",
                "Projects",
                ", ".join(sorted(p.name for p in model.projects)),
                ", ".join(sorted(p.name for p in projects)),
            )
            model.projects = projects

    if changes.sphere_ids is not None:
        current = {sphere.id for sphere in model.spheres}
        if set(changes.sphere_ids) != current:
            spheres = SphereRepository(session).find_by_ids(changes.sphere_ids)
            require_ids_exist("sphere", changes.sphere_ids, spheres)
            summary.add(
                "spheres",
                "Spheres",
                ", ".join(sorted(s.name for s in model.spheres)),
                ", ".join(sorted(s.name for s in spheres)),
            )
            model.spheres = spheres

    unknown = set(changes.removed_screenshots) - set(model.images)
    if unknown:
        raise ValidationError(
            f"Screenshot(s) not part of this model: {', '.join(sorted(unknown))}"
        )
    if changes.zip_file is not None:
        validated("zip_file", validate_archive_name, changes.zip_file.filename)
    for screenshot in changes.screenshots:
        validate_screenshot(screenshot.filename, screenshot.content_type)
    removed = {
        index
        for index, path in enumerate(model.images)
        if path in changes.removed_screenshots
    }
    if changes.screenshots or removed:
        validated(
            "screenshots",
            validate_screenshot_count,
            len(model.images) - len(removed) + len(changes.screenshots),
        )

    # Asset writes start here; everything above only read or validated.
    old_title = model.title
    renamed = False
    if new_title != model.title:
        renamed = _rename_folder(session, store, model, new_title)
        summary.add("title", "Title", model.title, new_title)
        model.title = new_title
        model.title_key = title_key(new_title)

    stored: list[str] = []
    # Indexes survive the folder rename, paths do not
    remaining = [p for i, p in enumerate(model.images) if i not in removed]
    obsolete = [p for i, p in enumerate(model.images) if i in removed]
    try:
        if changes.zip_file is not None:
            version = model.version + 1
            new_file = _store_files(
                store, model_folder(new_title, version), [changes.zip_file], stored
            )[0]
            obsolete.append(model.file_url)
            model.file_url = new_file
            model.version = version
            summary.note("file", f"Archive replaced (v{version})")
        added = _store_files(
            store,
            model_folder(new_title, model.version, screenshots=True),
            changes.screenshots,
            stored,
        )
    except UpstreamError:
        session.rollback()
        _discard_assets(store, stored)
        if renamed:
            _move_folder_back(store, new_title, old_title)
        raise

    if added or removed:
        model.images = remaining + added
        if added:
            summary.note("screenshots", f"Screenshots added: {len(added)}")
        if removed:
            summary.note("screenshots", f"Screenshots removed: {len(removed)}")

    if not summary:
        return model, summary

    model.updated_at = datetime.now()
    try:
        _commit_model(session, store, model, stored)
    except ConflictError:
        if renamed:
            _move_folder_back(store, new_title, old_title)
        raise
    _discard_assets(store, obsolete)

    log_database_operation("update", "models", model_id=model.id)
    record_model_updated(summary.fields)
    logger.info("Model updated", model_id=model.id, fields=summary.fields)
    AuditLogRecorder(session).record(
        f"Model updated: {model.title}. {summary.render()}",
        user_id=actor.id,
        model_id=model.id,
    )
    return model, summary


def list_screenshots(
    session: Session, store: AssetStore, model_id: str, version: int | None = None
) -> list[str]:
    model = get_model(session, model_id)
    version = version or model.version
    if version < 1:
        raise ValidationError("Version must be a positive number")
    return store.list_images(model_folder(model.title, version, screenshots=True))
