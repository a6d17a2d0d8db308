import os

# Settings are read at import time
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET", "test-secret-key-that-is-long-enough-for-hs256")
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402
from sqlmodel.pool import StaticPool  # noqa: E402

from modelvault.application.model_service import (  # noqa: E402
    NewModel,
    UploadedFile,
    create_model,
)
from modelvault.domain.exceptions import NotFoundError, UpstreamError  # noqa: E402
from modelvault.domain.permissions import (  # noqa: E402
    DEFAULT_ROLE_PERMISSIONS,
    Role,
)
from modelvault.infrastructure.database import models  # noqa: E402, F401
from modelvault.infrastructure.database.database import (  # noqa: E402
    enable_sqlite_foreign_keys,
    get_session,
)
from modelvault.infrastructure.database.models import CatalogModel, User  # noqa: E402
from modelvault.infrastructure.security import hash_password  # noqa: E402
from modelvault.infrastructure.storage import StoredFile  # noqa: E402
from modelvault.infrastructure.storage.base import (  # noqa: E402
    guess_content_type,
    unique_filename,
)
from modelvault.main import app  # noqa: E402
from modelvault.presentation.dependencies import get_asset_store  # noqa: E402
from modelvault.rate_limiting import rate_limiter  # noqa: E402

PASSWORD = "secret123"
PNG = b"\x89PNG\r\n\x1a\nfake"


class FakeAssetStore:
    """In-memory asset store. Paths in ``failing`` raise ``UpstreamError``."""

    def __init__(self):
        self.files: dict[str, StoredFile] = {}
        self.folders: set[str] = set()
        self.failing: set[str] = set()
        self.deleted: list[str] = []
        self.delete_attempts: list[str] = []
        self.moves: list[tuple[str, str]] = []

    def _check(self, path: str) -> None:
        if path in self.failing:
            raise UpstreamError(f"Simulated failure for {path}")

    def store(self, folder, filename, content, content_type):
        self._check(folder)
        path = f"{folder.strip('/')}/{unique_filename(filename)}"
        self._check(path)
        self.files[path] = StoredFile(
            content=content,
            content_type=content_type or guess_content_type(filename),
            filename=path.rsplit("/", 1)[-1],
        )
        return path

    def fetch(self, path):
        self._check(path)
        if path not in self.files:
            raise NotFoundError(f"Asset '{path}' not found")
        return self.files[path]

    def list_images(self, folder):
        prefix = folder.strip("/") + "/"
        return sorted(
            path
            for path, stored in self.files.items()
            if path.startswith(prefix)
            and "/" not in path[len(prefix) :]
            and stored.content_type.startswith("image/")
        )

    def delete(self, path):
        self.delete_attempts.append(path)
        self._check(path)
        if path not in self.files:
            raise NotFoundError(f"Asset '{path}' not found")
        del self.files[path]
        self.deleted.append(path)

    def delete_folder(self, folder):
        self._check(folder)
        prefix = folder.strip("/") + "/"
        doomed = [path for path in self.files if path.startswith(prefix)]
        if not doomed and folder not in self.folders:
            raise NotFoundError(f"Asset '{folder}' not found")
        for path in doomed:
            del self.files[path]
        self.folders.discard(folder)
        self.deleted.append(folder)

    def ensure_folder(self, folder):
        self.folders.add(folder.strip("/"))

    def move_folder(self, source, destination):
        self._check(source)
        prefix = source.strip("/") + "/"
        moving = [path for path in self.files if path.startswith(prefix)]
        if not moving:
            raise NotFoundError(f"Asset '{source}' not found")
        target = destination.strip("/") + "/"
        if any(path.startswith(target) for path in self.files):
            raise UpstreamError(f"Folder '{destination}' already exists")
        for path in moving:
            new_path = destination.strip("/") + "/" + path[len(prefix) :]
            self.files[new_path] = self.files.pop(path)
        self.moves.append((source, destination))

    def close(self):
        pass


@pytest.fixture(name="session")
def session_fixture():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    engine.dispose()


@pytest.fixture(name="store")
def store_fixture():
    return FakeAssetStore()


@pytest.fixture(name="make_user")
def make_user_fixture(session: Session):
    counter = {"n": 0}

    def make_user(
        role: Role = Role.ARTIST,
        permissions: list[str] | None = None,
        email: str | None = None,
        name: str | None = None,
    ) -> User:
        counter["n"] += 1
        if permissions is None:
            permissions = [str(p) for p in DEFAULT_ROLE_PERMISSIONS[role]]
        user = User(
            name=name or f"{role.value.title()} {counter['n']}",
            email=email or f"{role.value.lower()}{counter['n']}@example.com",
            password_hash=hash_password(PASSWORD),
            role=role,
            permissions=permissions,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return make_user


@pytest.fixture(name="admin")
def admin_fixture(make_user) -> User:
    return make_user(Role.ADMIN, email="admin@example.com", name="Admin")


@pytest.fixture(name="artist")
def artist_fixture(make_user) -> User:
    return make_user(Role.ARTIST, email="artist@example.com", name="Artist")


@pytest.fixture(name="programmer")
def programmer_fixture(make_user) -> User:
    return make_user(Role.PROGRAMMER, email="dev@example.com", name="Programmer")


def screenshot(name: str = "front.png") -> UploadedFile:
    return UploadedFile(filename=name, content_type="image/png", data=PNG)


def archive(name: str = "model.zip") -> UploadedFile:
    return UploadedFile(
        filename=name, content_type="application/zip", data=b"PK\x03\x04zip"
    )


@pytest.fixture(name="make_model")
def make_model_fixture(session: Session, store: FakeAssetStore, artist: User):
    def make_model(
        title: str = "Bolt", author: User | None = None, **kwargs
    ) -> CatalogModel:
        return create_model(
            session,
            store,
            author or artist,
            NewModel(
                title=title,
                zip_file=archive(),
                screenshots=[screenshot("front.png"), screenshot("side.png")],
                **kwargs,
            ),
        )

    return make_model


@pytest.fixture(name="client")
def client_fixture(session: Session, store: FakeAssetStore):
    def get_session_override():
        return session

    def get_asset_store_override():
        return store

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_asset_store] = get_asset_store_override
    rate_limiter.disable()
    rate_limiter.reset()
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
    rate_limiter.enable()
    rate_limiter.reset()


def login(client: TestClient, user: User, password: str = PASSWORD) -> None:
    response = client.post(
        "/api/auth/login", json={"email": user.email, "password": password}
    )
    assert response.status_code == 200, response.text
