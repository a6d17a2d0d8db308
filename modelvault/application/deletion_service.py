"""Two-stage deletion workflow for catalogue models.

ACTIVE -> MARKED -> PURGED_PENDING -> GONE, with ACTIVE -> PURGED_PENDING for
administrators. Rows move between states through conditional statements, so
concurrent requests for the same model resolve to exactly one winner. Stored
assets are only touched by ``finalize_purge``.
"""

from dataclasses import dataclass, field
from typing import Final

from sqlmodel import Session

from ..domain.constants import MAX_DESCRIPTION_LENGTH
from ..domain.deletion import DeletionState, ensure_transition, state_of
from ..domain.entities import model_root_folder
from ..domain.exceptions import (
    InvalidStateError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from ..domain.permissions import Permission
from ..domain.policy import is_admin, require, require_admin, require_signed_in
from ..infrastructure.database.models import CatalogModel, DeletedModel, User
from ..infrastructure.database.repositories import (
    DeletedModelRepository,
    ModelRepository,
)
from ..infrastructure.storage import AssetStore
from ..logging_config import get_logger
from ..logging_utils import log_database_operation
from ..metrics import record_asset_purge, record_deletion_transition
from .audit_service import AuditLogRecorder, model_deleted_action

logger: Final = get_logger(__name__)


@dataclass
class PurgeReport:
    """What ``finalize_purge`` managed to remove from the asset store."""

    deleted_model_id: str
    title: str
    deleted: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    folder_removed: bool = False


def _clean_comment(comment: str | None) -> str | None:
    if comment is None or not comment.strip():
        return None
    comment = comment.strip()
    if len(comment) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(
            f"Comment cannot be longer than {MAX_DESCRIPTION_LENGTH} characters"
        )
    return comment


class DeletionWorkflow:
    """Application service for the deletion-approval workflow."""

    def __init__(self, session: Session, store: AssetStore):
        self.session = session
        self.store = store
        self.model_repo = ModelRepository(session)
        self.deleted_repo = DeletedModelRepository(session)
        self.audit = AuditLogRecorder(session)

    def _get_model(self, model_id: str) -> CatalogModel:
        model = self.model_repo.find_by_id(model_id)
        if model is None:
            raise NotFoundError(f"Model {model_id} not found")
        return model

    def request_deletion(
        self, model_id: str, actor: User | None, comment: str | None = None
    ) -> DeletionState:
        """Ask for a model to be deleted.

        Administrators skip the approval step and the model goes straight to
        the tombstone table; everyone else leaves a mark for an administrator
        to review.
        """
        actor = require(actor, Permission.DELETE_MODELS)
        comment = _clean_comment(comment)
        model = self._get_model(model_id)
        current = state_of(model.marked_for_deletion)
        if current != DeletionState.ACTIVE:
            raise InvalidStateError(
                f"Model '{model.title}' is already marked for deletion"
            )

        if is_admin(actor):
            ensure_transition(current, DeletionState.PURGED_PENDING, model.title)
            self._move_to_tombstone(model, actor, comment)
            return DeletionState.PURGED_PENDING

        ensure_transition(current, DeletionState.MARKED_FOR_DELETION, model.title)
        title = model.title
        if not self.model_repo.mark_for_deletion(model_id, actor.id, comment):
            self.session.rollback()
            raise InvalidStateError(f"Model '{title}' is already marked for deletion")
        self.session.commit()

        log_database_operation("update", "models", model_id=model_id, state="MARKED")
        record_deletion_transition("marked")
        logger.info("Deletion requested", model_id=model_id, actor_id=actor.id)

        action = f"Deletion requested: {title}"
        if comment:
            action += f" (reason: {comment})"
        self.audit.record(action, user_id=actor.id, model_id=model_id)
        return DeletionState.MARKED_FOR_DELETION

    def restore(self, model_id: str, actor: User | None) -> DeletionState:
        """Reject a pending deletion request and clear the mark."""
        actor = require_admin(actor)
        model = self._get_model(model_id)
        title = model.title
        ensure_transition(
            state_of(model.marked_for_deletion), DeletionState.ACTIVE, title
        )

        if not self.model_repo.clear_deletion_mark(model_id):
            self.session.rollback()
            raise InvalidStateError(f"Model '{title}' is not marked for deletion")
        self.session.commit()

        log_database_operation("update", "models", model_id=model_id, state="ACTIVE")
        record_deletion_transition("restored")
        logger.info("Deletion request rejected", model_id=model_id, actor_id=actor.id)
        self.audit.record(
            f"Deletion request rejected: {title}", user_id=actor.id, model_id=model_id
        )
        return DeletionState.ACTIVE

    def confirm_purge(self, model_id: str, actor: User | None) -> DeletedModel:
        """Approve a pending deletion request."""
        actor = require_admin(actor)
        model = self._get_model(model_id)
        if state_of(model.marked_for_deletion) != DeletionState.MARKED_FOR_DELETION:
            raise InvalidStateError(f"Model '{model.title}' is not marked for deletion")
        return self._move_to_tombstone(model, actor, model.deletion_comment)

    def _move_to_tombstone(
        self, model: CatalogModel, actor: User, comment: str | None
    ) -> DeletedModel:
        was_marked = model.marked_for_deletion
        model_id = model.id
        tombstone = DeletedModel(
            original_model_id=model.id,
            title=model.title,
            description=model.description,
            file_url=model.file_url,
            images=list(model.images),
            author_name=model.author.name if model.author else None,
            sphere_names=[sphere.name for sphere in model.spheres],
            project_names=[project.name for project in model.projects],
            deletion_comment=comment,
            user_id=model.marked_by_id if was_marked else actor.id,
            created_at=model.created_at,
        )

        if not self.model_repo.delete_if_marked(model_id, marked=was_marked):
            self.session.rollback()
            raise InvalidStateError(
                f"Model '{tombstone.title}' was changed by another request"
            )
        self.session.add(tombstone)
        self.session.commit()
        self.session.refresh(tombstone)

        log_database_operation(
            "delete", "models", model_id=model_id, tombstone_id=tombstone.id
        )
        record_deletion_transition("purged_from_marked" if was_marked else "purged")
        logger.info(
            "Model moved to deleted models",
            model_id=model_id,
            tombstone_id=tombstone.id,
            actor_id=actor.id,
        )
        # The model row is gone, so the entry cannot reference it
        self.audit.record(model_deleted_action(tombstone.title), user_id=actor.id)
        return tombstone

    def list_deleted(
        self, actor: User | None, page: int, limit: int
    ) -> tuple[list[DeletedModel], int]:
        require_signed_in(actor)
        return self.deleted_repo.find_page(max(page, 1), max(limit, 1))

    def get_deleted(self, deleted_id: str, actor: User | None) -> DeletedModel:
        require_signed_in(actor)
        tombstone = self.deleted_repo.find_by_id(deleted_id)
        if tombstone is None:
            raise NotFoundError(f"Deleted model {deleted_id} not found")
        return tombstone

    def finalize_purge(self, deleted_id: str, actor: User | None) -> PurgeReport:
        """Remove a tombstone's assets from the store, then the tombstone.

        Each asset is attempted independently; a failure is reported, not
        raised. The tombstone row is removed either way.
        """
        actor = require_admin(actor)
        tombstone = self.get_deleted(deleted_id, actor)
        title = tombstone.title
        report = PurgeReport(deleted_model_id=deleted_id, title=title)

        paths = [*tombstone.images]
        if tombstone.file_url:
            paths.append(tombstone.file_url)
        for path in paths:
            try:
                self.store.delete(path)
            except NotFoundError:
                report.missing.append(path)
            except UpstreamError as e:
                logger.warning("Asset purge failed", path=path, error=e.message)
                report.failed.append(path)
            else:
                report.deleted.append(path)

        folder = model_root_folder(title)
        if self.model_repo.folder_in_use(folder) or self.deleted_repo.folder_in_use(
            folder, exclude_id=deleted_id
        ):
            logger.info("Asset folder still in use, kept", folder=folder)
        else:
            try:
                self.store.delete_folder(folder)
                report.folder_removed = True
            except (NotFoundError, UpstreamError) as e:
                logger.info("Asset folder not removed", folder=folder, error=e.message)

        ensure_transition(DeletionState.PURGED_PENDING, DeletionState.PURGED, title)
        if not self.deleted_repo.delete(deleted_id):
            self.session.rollback()
            raise InvalidStateError(f"Deleted model '{title}' was already finalized")
        self.session.commit()

        log_database_operation("delete", "deleted_models", tombstone_id=deleted_id)
        record_deletion_transition("gone")
        record_asset_purge(len(report.deleted), len(report.failed))
        logger.info(
            "Deleted model finalized",
            tombstone_id=deleted_id,
            deleted=len(report.deleted),
            missing=len(report.missing),
            failed=len(report.failed),
        )
        self.audit.record(f"Model permanently deleted ({title})", user_id=actor.id)
        return report

    def finalize_all(self, actor: User | None) -> list[PurgeReport]:
        actor = require_admin(actor)
        reports = []
        tombstone_ids = [tombstone.id for tombstone in self.deleted_repo.find_all()]
        for tombstone_id in tombstone_ids:
            try:
                reports.append(self.finalize_purge(tombstone_id, actor))
            except (InvalidStateError, NotFoundError):
                # Finalized concurrently by another request
                continue
        return reports
