"""Tests for model upload, partial update and lookup."""

import pytest
from sqlmodel import Session, select

from modelvault.application.deletion_service import DeletionWorkflow
from modelvault.application.model_service import (
    ModelChanges,
    NewModel,
    create_model,
    list_models,
    list_screenshots,
    title_exists,
    update_model,
)
from modelvault.application.project_service import create_project
from modelvault.application.sphere_service import create_sphere
from modelvault.domain.exceptions import (
    ConflictError,
    ForbiddenError,
    UpstreamError,
    ValidationError,
)
from modelvault.domain.permissions import Permission, Role
from modelvault.infrastructure.database.models import (
    CatalogModel,
    DeletedModel,
    LogEntry,
    User,
)
from modelvault.infrastructure.database.repositories import ModelRepository

from conftest import archive, screenshot


def test_create_model_stores_assets_and_logs(
    session: Session, store, make_model, artist: User
):
    model = make_model("Bolt", description="M8 bolt")

    assert model.title == "Bolt"
    assert model.version == 1
    assert model.author_id == artist.id
    assert model.file_url.startswith("models/Bolt/v1/")
    assert model.file_url.endswith("-model.zip")
    assert len(model.images) == 2
    assert all(p.startswith("models/Bolt/v1/screenshots/") for p in model.images)
    assert set(store.files) == {model.file_url, *model.images}

    entry = session.exec(select(LogEntry)).one()
    assert entry.action == "Model uploaded: Bolt"
    assert entry.user_id == artist.id
    assert entry.model_id == model.id


def test_title_is_unique_case_insensitively(make_model):
    make_model("Bolt")
    with pytest.raises(ConflictError):
        make_model("bolt")


def test_cyrillic_titles_compare_case_insensitively(make_model):
    make_model("Болт")
    with pytest.raises(ConflictError):
        make_model("БОЛТ")


def test_title_exists(session: Session, make_model):
    model = make_model("Bolt")
    assert title_exists(session, "BOLT")
    assert not title_exists(session, "Nut")
    assert not title_exists(session, "bolt", exclude_id=model.id)
    assert not title_exists(session, "   ")


@pytest.mark.parametrize("title", ["", "   ", "Bolt<script>", "x" * 51])
def test_invalid_titles_are_rejected(make_model, title: str):
    with pytest.raises(ValidationError):
        make_model(title)


def test_upload_needs_two_screenshots(session: Session, store, artist: User):
    with pytest.raises(ValidationError, match="At least 2"):
        create_model(
            session,
            store,
            artist,
            NewModel(title="Bolt", zip_file=archive(), screenshots=[screenshot()]),
        )
    assert store.files == {}


def test_upload_rejects_non_zip_archive(session: Session, store, artist: User):
    with pytest.raises(ValidationError):
        create_model(
            session,
            store,
            artist,
            NewModel(
                title="Bolt",
                zip_file=archive("model.rar"),
                screenshots=[screenshot(), screenshot()],
            ),
        )


def test_upload_requires_permission(session: Session, store, programmer: User):
    with pytest.raises(ForbiddenError):
        create_model(
            session,
            store,
            programmer,
            NewModel(
                title="Bolt",
                zip_file=archive(),
                screenshots=[screenshot(), screenshot()],
            ),
        )


def test_upload_failure_removes_stored_assets(session: Session, store, artist: User):
    store.failing.add("models/Bolt/v1/screenshots")

    with pytest.raises(UpstreamError):
        create_model(
            session,
            store,
            artist,
            NewModel(
                title="Bolt",
                zip_file=archive(),
                screenshots=[screenshot(), screenshot()],
            ),
        )

    assert store.files == {}
    assert session.exec(select(CatalogModel)).all() == []


def test_upload_with_unknown_project_is_rejected(make_model):
    with pytest.raises(ValidationError, match="Unknown project"):
        make_model("Bolt", project_ids=["missing"])


def test_list_models_filters(
    session: Session, make_model, artist: User, admin: User
):
    project = create_project(session, admin, "Plant")
    sphere = create_sphere(session, admin, "Химия")
    bolt = make_model("Bolt", project_ids=[project.id])
    nut = make_model("Nut", sphere_ids=[sphere.id])

    assert [m.id for m in list_models(session, project_id=project.id)] == [bolt.id]
    assert [m.id for m in list_models(session, sphere_id=sphere.id)] == [nut.id]
    assert {m.id for m in list_models(session)} == {bolt.id, nut.id}
    assert list_models(session, marked_for_deletion=True) == []


def test_update_description_with_narrow_permission(
    session: Session, store, make_model, make_user
):
    model = make_model("Bolt")
    manager = make_user(Role.MANAGER)

    updated, summary = update_model(
        session, store, manager, model.id, ModelChanges(description="New text")
    )

    assert updated.description == "New text"
    assert summary.fields == ["description"]
    entry = session.exec(select(LogEntry).where(LogEntry.user_id == manager.id)).one()
    assert entry.action == "Model updated: Bolt. Description updated"


def test_update_title_needs_edit_models(
    session: Session, store, make_model, make_user
):
    model = make_model("Bolt")
    manager = make_user(Role.MANAGER)

    with pytest.raises(ForbiddenError):
        update_model(session, store, manager, model.id, ModelChanges(title="Nut"))

    session.refresh(model)
    assert model.title == "Bolt"


def test_forbidden_field_blocks_the_whole_update(
    session: Session, store, make_model, make_user
):
    model = make_model("Bolt")
    user = make_user(Role.ANALYST, permissions=[Permission.EDIT_MODEL_DESCRIPTION])

    with pytest.raises(ForbiddenError):
        update_model(
            session,
            store,
            user,
            model.id,
            ModelChanges(description="ok", screenshots=[screenshot()]),
        )

    session.refresh(model)
    assert model.description is None
    assert len(store.files) == 3


def test_rename_moves_folder_and_rewrites_paths(
    session: Session, store, make_model, artist: User
):
    model = make_model("Bolt")

    updated, summary = update_model(
        session, store, artist, model.id, ModelChanges(title="Hex Bolt")
    )

    assert updated.title == "Hex Bolt"
    assert store.moves == [("models/Bolt", "models/Hex_Bolt")]
    assert updated.file_url.startswith("models/Hex_Bolt/v1/")
    assert all(path in store.files for path in updated.images)
    assert 'Title: "Bolt" → "Hex Bolt"' in summary.changes


def test_rename_to_taken_title_conflicts(
    session: Session, store, make_model, artist: User
):
    make_model("Nut")
    bolt = make_model("Bolt")
    with pytest.raises(ConflictError):
        update_model(session, store, artist, bolt.id, ModelChanges(title="NUT"))


def test_rename_conflict_at_commit_moves_folder_back(
    session: Session, store, make_model, artist: User, monkeypatch
):
    make_model("gear")
    bolt = make_model("Bolt")
    bolt_id = bolt.id
    paths = [bolt.file_url, *bolt.images]
    # Another request takes the title between the check and the commit
    monkeypatch.setattr(ModelRepository, "title_taken", lambda *args, **kw: False)

    with pytest.raises(ConflictError, match="'GEAR'"):
        update_model(session, store, artist, bolt_id, ModelChanges(title="GEAR"))

    assert store.moves == [
        ("models/Bolt", "models/GEAR"),
        ("models/GEAR", "models/Bolt"),
    ]
    reloaded = session.get(CatalogModel, bolt_id)
    assert reloaded.title == "Bolt"
    assert [reloaded.file_url, *reloaded.images] == paths
    assert all(path in store.files for path in paths)
    assert len(session.exec(select(LogEntry)).all()) == 2


def test_rename_upload_failure_moves_folder_back(
    session: Session, store, make_model, artist: User
):
    model = make_model("Bolt")
    paths = [model.file_url, *model.images]
    store.failing.add("models/Hex_Bolt/v2")

    with pytest.raises(UpstreamError):
        update_model(
            session,
            store,
            artist,
            model.id,
            ModelChanges(title="Hex Bolt", zip_file=archive("v2.zip")),
        )

    assert store.moves[-1] == ("models/Hex_Bolt", "models/Bolt")
    session.refresh(model)
    assert model.title == "Bolt"
    assert all(path in store.files for path in paths)


def test_rename_onto_pending_tombstone_folder_keeps_paths(
    session: Session, store, make_model, artist: User, admin: User
):
    gear = make_model("Gear")
    workflow = DeletionWorkflow(session, store)
    workflow.request_deletion(gear.id, admin)
    bolt = make_model("Bolt")
    screenshots = list(bolt.images)

    updated, _ = update_model(
        session,
        store,
        artist,
        bolt.id,
        ModelChanges(title="Gear", zip_file=archive("v2.zip")),
    )

    assert updated.title == "Gear"
    assert store.moves == []
    assert updated.images == screenshots
    assert updated.file_url.startswith("models/Gear/v2/")

    tombstone = session.exec(select(DeletedModel)).one()
    report = workflow.finalize_purge(tombstone.id, admin)

    # The live model now keeps its new archive in the same folder
    assert not report.folder_removed
    assert all(path in store.files for path in [updated.file_url, *screenshots])


def test_new_archive_bumps_version(session: Session, store, make_model, artist: User):
    model = make_model("Bolt")
    old_archive = model.file_url

    updated, _ = update_model(
        session, store, artist, model.id, ModelChanges(zip_file=archive("v2.zip"))
    )

    assert updated.version == 2
    assert updated.file_url.startswith("models/Bolt/v2/")
    assert old_archive not in store.files
    assert updated.file_url in store.files


def test_screenshots_added_and_removed(
    session: Session, store, make_model, artist: User
):
    model = make_model("Bolt")
    first, second = model.images

    updated, _ = update_model(
        session,
        store,
        artist,
        model.id,
        ModelChanges(screenshots=[screenshot("top.png")], removed_screenshots=[first]),
    )

    assert updated.images[0] == second
    assert len(updated.images) == 2
    assert first not in store.files


def test_cannot_drop_below_two_screenshots(
    session: Session, store, make_model, artist: User
):
    model = make_model("Bolt")
    with pytest.raises(ValidationError):
        update_model(
            session,
            store,
            artist,
            model.id,
            ModelChanges(removed_screenshots=[model.images[0]]),
        )


def test_removing_foreign_screenshot_is_rejected(
    session: Session, store, make_model, artist: User
):
    model = make_model("Bolt")
    with pytest.raises(ValidationError):
        update_model(
            session,
            store,
            artist,
            model.id,
            ModelChanges(removed_screenshots=["models/Other/v1/screenshots/x.png"]),
        )


def test_update_without_changes_writes_nothing(
    session: Session, store, make_model, artist: User
):
    model = make_model("Bolt")

    _, summary = update_model(
        session, store, artist, model.id, ModelChanges(title="Bolt")
    )

    assert not summary
    assert len(session.exec(select(LogEntry)).all()) == 1


def test_empty_description_matches_missing_one(
    session: Session, store, make_model, programmer: User
):
    model = make_model("Bolt")

    # No edit permission needed when nothing changes
    updated, summary = update_model(
        session, store, programmer, model.id, ModelChanges(description="")
    )

    assert not summary
    assert updated.description is None
    assert len(session.exec(select(LogEntry)).all()) == 1


def test_empty_description_clears_existing_one(
    session: Session, store, make_model, artist: User
):
    model = make_model("Bolt", description="M8")

    updated, summary = update_model(
        session, store, artist, model.id, ModelChanges(description="")
    )

    assert updated.description is None
    assert summary.fields == ["description"]


def test_list_screenshots_reads_the_store(
    session: Session, store, make_model, artist: User
):
    model = make_model("Bolt")
    assert list_screenshots(session, store, model.id) == sorted(model.images)
    assert list_screenshots(session, store, model.id, version=2) == []
