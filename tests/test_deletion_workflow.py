"""Tests for the two-stage deletion workflow."""

import pytest
from sqlalchemy import update
from sqlmodel import Session, col, select

from modelvault.application.deletion_service import DeletionWorkflow
from modelvault.application.model_service import NewModel, create_model
from modelvault.domain.deletion import DeletionState
from modelvault.domain.exceptions import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
)
from modelvault.domain.permissions import Role
from modelvault.infrastructure.database.models import (
    CatalogModel,
    DeletedModel,
    LogEntry,
    User,
)

from conftest import archive, screenshot


def log_actions(session: Session) -> list[str]:
    return [entry.action for entry in session.exec(select(LogEntry)).all()]


def deletion_logs(session: Session) -> list[str]:
    return [a for a in log_actions(session) if not a.startswith("Model uploaded")]


@pytest.fixture(name="workflow")
def workflow_fixture(session: Session, store) -> DeletionWorkflow:
    return DeletionWorkflow(session, store)


def flip_mark_after_load(workflow: DeletionWorkflow, monkeypatch, marked: bool):
    """Another request changes the stored mark right after the model is loaded."""
    load = workflow._get_model

    def load_then_flip(model_id: str) -> CatalogModel:
        model = load(model_id)
        workflow.session.exec(
            update(CatalogModel)
            .where(col(CatalogModel.id) == model_id)
            .values(marked_for_deletion=marked)
            .execution_options(synchronize_session=False)
        )
        return model

    monkeypatch.setattr(workflow, "_get_model", load_then_flip)


def test_non_admin_request_marks_model(
    session: Session, workflow: DeletionWorkflow, make_model, artist: User
):
    model = make_model("Bolt")

    state = workflow.request_deletion(model.id, artist, "Duplicate of Nut")

    assert state == DeletionState.MARKED_FOR_DELETION
    session.refresh(model)
    assert model.marked_for_deletion
    assert model.marked_by_id == artist.id
    assert model.marked_at is not None
    assert model.deletion_comment == "Duplicate of Nut"
    assert deletion_logs(session) == [
        "Deletion requested: Bolt (reason: Duplicate of Nut)"
    ]


def test_second_request_is_invalid_state_and_writes_nothing(
    session: Session, workflow: DeletionWorkflow, make_model, artist: User
):
    model = make_model("Bolt")
    workflow.request_deletion(model.id, artist, "first")

    with pytest.raises(InvalidStateError):
        workflow.request_deletion(model.id, artist, "second")

    session.refresh(model)
    assert model.marked_for_deletion
    assert model.deletion_comment == "first"
    assert len(deletion_logs(session)) == 1


def test_request_requires_delete_permission(
    workflow: DeletionWorkflow, make_model, programmer: User
):
    model = make_model("Bolt")
    with pytest.raises(ForbiddenError):
        workflow.request_deletion(model.id, programmer)
    with pytest.raises(UnauthorizedError):
        workflow.request_deletion(model.id, None)


def test_admin_request_goes_straight_to_tombstone(
    session: Session, workflow: DeletionWorkflow, make_model, admin: User, store
):
    model = make_model("Bolt")
    model_id = model.id
    stored = set(store.files)

    state = workflow.request_deletion(model_id, admin, "obsolete")

    assert state == DeletionState.PURGED_PENDING
    assert session.get(CatalogModel, model_id) is None
    tombstone = session.exec(select(DeletedModel)).one()
    assert tombstone.original_model_id == model_id
    assert tombstone.title == "Bolt"
    assert tombstone.deletion_comment == "obsolete"
    assert tombstone.user_id == admin.id
    assert deletion_logs(session) == ["Model deleted (Bolt)"]
    # Assets stay until the final purge
    assert set(store.files) == stored


def test_restore_clears_the_mark(
    session: Session,
    workflow: DeletionWorkflow,
    make_model,
    artist: User,
    admin: User,
):
    model = make_model("Bolt")
    workflow.request_deletion(model.id, artist, "oops")

    state = workflow.restore(model.id, admin)

    assert state == DeletionState.ACTIVE
    session.refresh(model)
    assert not model.marked_for_deletion
    assert model.marked_by_id is None
    assert model.marked_at is None
    assert model.deletion_comment is None
    assert deletion_logs(session)[-1] == "Deletion request rejected: Bolt"


def test_restore_active_model_is_invalid_state(
    session: Session, workflow: DeletionWorkflow, make_model, admin: User
):
    model = make_model("Bolt")
    with pytest.raises(InvalidStateError):
        workflow.restore(model.id, admin)
    assert deletion_logs(session) == []


def test_restore_requires_admin(
    workflow: DeletionWorkflow, make_model, artist: User
):
    model = make_model("Bolt")
    workflow.request_deletion(model.id, artist)
    with pytest.raises(ForbiddenError):
        workflow.restore(model.id, artist)


def test_confirm_purge_moves_marked_model_to_tombstone(
    session: Session,
    workflow: DeletionWorkflow,
    make_model,
    artist: User,
    admin: User,
):
    model = make_model("Bolt")
    model_id = model.id
    workflow.request_deletion(model_id, artist, "duplicate")

    tombstone = workflow.confirm_purge(model_id, admin)

    assert session.get(CatalogModel, model_id) is None
    assert tombstone.user_id == artist.id
    assert tombstone.deletion_comment == "duplicate"
    assert tombstone.author_name == artist.name
    assert deletion_logs(session)[-1] == "Model deleted (Bolt)"


def test_confirm_purge_twice_second_fails(
    workflow: DeletionWorkflow, make_model, artist: User, admin: User
):
    model = make_model("Bolt")
    model_id = model.id
    workflow.request_deletion(model_id, artist)
    workflow.confirm_purge(model_id, admin)

    with pytest.raises(NotFoundError):
        workflow.confirm_purge(model_id, admin)


def test_confirm_purge_of_unmarked_model_is_invalid_state(
    workflow: DeletionWorkflow, make_model, admin: User
):
    model = make_model("Bolt")
    with pytest.raises(InvalidStateError):
        workflow.confirm_purge(model.id, admin)


def test_request_loses_to_concurrent_mark(
    session: Session,
    workflow: DeletionWorkflow,
    make_model,
    artist: User,
    monkeypatch,
):
    model = make_model("Bolt")
    flip_mark_after_load(workflow, monkeypatch, marked=True)

    with pytest.raises(InvalidStateError, match="already marked"):
        workflow.request_deletion(model.id, artist, "late")

    assert session.exec(select(DeletedModel)).all() == []
    assert deletion_logs(session) == []


def test_admin_request_loses_to_concurrent_mark(
    session: Session,
    workflow: DeletionWorkflow,
    make_model,
    admin: User,
    monkeypatch,
):
    model = make_model("Bolt")
    model_id = model.id
    flip_mark_after_load(workflow, monkeypatch, marked=True)

    with pytest.raises(InvalidStateError, match="changed by another request"):
        workflow.request_deletion(model_id, admin)

    assert session.get(CatalogModel, model_id) is not None
    assert session.exec(select(DeletedModel)).all() == []
    assert deletion_logs(session) == []


def test_restore_loses_to_concurrent_restore(
    session: Session,
    workflow: DeletionWorkflow,
    make_model,
    artist: User,
    admin: User,
    monkeypatch,
):
    model = make_model("Bolt")
    workflow.request_deletion(model.id, artist)
    flip_mark_after_load(workflow, monkeypatch, marked=False)

    with pytest.raises(InvalidStateError, match="not marked"):
        workflow.restore(model.id, admin)

    assert deletion_logs(session) == ["Deletion requested: Bolt"]


def test_confirm_purge_loses_to_concurrent_decision(
    session: Session,
    workflow: DeletionWorkflow,
    make_model,
    artist: User,
    admin: User,
    monkeypatch,
):
    model = make_model("Bolt")
    model_id = model.id
    workflow.request_deletion(model_id, artist)
    flip_mark_after_load(workflow, monkeypatch, marked=False)

    with pytest.raises(InvalidStateError, match="changed by another request"):
        workflow.confirm_purge(model_id, admin)

    assert session.get(CatalogModel, model_id) is not None
    assert session.exec(select(DeletedModel)).all() == []
    assert deletion_logs(session) == ["Deletion requested: Bolt"]


def test_finalize_purge_removes_assets_and_tombstone(
    session: Session, workflow: DeletionWorkflow, make_model, admin: User, store
):
    model = make_model("Bolt")
    paths = [*model.images, model.file_url]
    workflow.request_deletion(model.id, admin)
    tombstone = session.exec(select(DeletedModel)).one()

    report = workflow.finalize_purge(tombstone.id, admin)

    assert sorted(report.deleted) == sorted(paths)
    assert report.failed == []
    assert report.folder_removed
    assert store.files == {}
    assert session.get(DeletedModel, tombstone.id) is None
    assert log_actions(session)[-1] == "Model permanently deleted (Bolt)"


def test_finalize_purge_survives_a_failing_screenshot(
    session: Session, workflow: DeletionWorkflow, admin: User, store
):
    model = create_model(
        session,
        store,
        admin,
        NewModel(
            title="Gear",
            zip_file=archive(),
            screenshots=[screenshot(name) for name in ("a.png", "b.png", "c.png")],
        ),
    )
    paths = {*model.images, model.file_url}
    failing = model.images[1]
    store.failing.add(failing)
    workflow.request_deletion(model.id, admin)
    tombstone = session.exec(select(DeletedModel)).one()

    report = workflow.finalize_purge(tombstone.id, admin)

    assert report.failed == [failing]
    assert set(store.delete_attempts) >= paths
    assert len(report.deleted) == 3
    assert session.get(DeletedModel, tombstone.id) is None


def test_finalize_purge_reports_missing_assets(
    session: Session, workflow: DeletionWorkflow, make_model, admin: User, store
):
    model = make_model("Bolt")
    missing = model.images[0]
    del store.files[missing]
    workflow.request_deletion(model.id, admin)
    tombstone = session.exec(select(DeletedModel)).one()

    report = workflow.finalize_purge(tombstone.id, admin)

    assert report.missing == [missing]
    assert session.get(DeletedModel, tombstone.id) is None


def test_finalize_purge_keeps_folder_shared_with_live_model(
    session: Session, workflow: DeletionWorkflow, make_model, admin: User, store
):
    # Both titles sanitize to "models/_"
    doomed = make_model("Бур")
    survivor = make_model("Кол")
    workflow.request_deletion(doomed.id, admin)
    tombstone = session.exec(select(DeletedModel)).one()

    report = workflow.finalize_purge(tombstone.id, admin)

    assert not report.folder_removed
    assert all(path in store.files for path in survivor.images)


def test_finalize_purge_keeps_folder_shared_with_other_tombstone(
    session: Session, workflow: DeletionWorkflow, make_model, admin: User, store
):
    first = make_model("Бур")
    second = make_model("Кол")
    second_paths = [second.file_url, *second.images]
    workflow.request_deletion(first.id, admin)
    workflow.request_deletion(second.id, admin)
    tombstone = session.exec(
        select(DeletedModel).where(DeletedModel.title == "Бур")
    ).one()

    report = workflow.finalize_purge(tombstone.id, admin)

    assert not report.folder_removed
    assert all(path in store.files for path in second_paths)


def test_finalize_purge_requires_admin(
    session: Session,
    workflow: DeletionWorkflow,
    make_model,
    admin: User,
    artist: User,
):
    model = make_model("Bolt")
    workflow.request_deletion(model.id, admin)
    tombstone = session.exec(select(DeletedModel)).one()

    with pytest.raises(ForbiddenError):
        workflow.finalize_purge(tombstone.id, artist)


def test_finalize_all(
    session: Session, workflow: DeletionWorkflow, make_model, admin: User, store
):
    for title in ("Bolt", "Nut", "Washer"):
        workflow.request_deletion(make_model(title).id, admin)

    reports = workflow.finalize_all(admin)

    assert sorted(r.title for r in reports) == ["Bolt", "Nut", "Washer"]
    assert session.exec(select(DeletedModel)).all() == []
    assert store.files == {}


def test_list_deleted_requires_session(
    workflow: DeletionWorkflow, make_model, make_user
):
    admin = make_user(Role.ADMIN)
    workflow.request_deletion(make_model("Bolt").id, admin)

    with pytest.raises(UnauthorizedError):
        workflow.list_deleted(None, 1, 20)

    rows, total = workflow.list_deleted(make_user(Role.PROGRAMMER), 1, 20)
    assert total == 1
    assert rows[0].title == "Bolt"
