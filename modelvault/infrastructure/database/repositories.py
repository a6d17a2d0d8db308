"""Infrastructure layer - Repository implementations.

Workflow transitions are single conditional statements: the WHERE clause
re-checks the expected state, and a rowcount of zero means another request
got there first.
"""

from dataclasses import dataclass
from datetime import date, datetime, time

from sqlalchemy import String, cast, delete, func, or_, update
from sqlalchemy.orm import selectinload
from sqlmodel import Session, col, select

from .models import (
    CatalogModel,
    DeletedModel,
    LogEntry,
    ModelProjectLink,
    ModelSphereLink,
    Project,
    Sphere,
    User,
)


def title_key(title: str) -> str:
    return title.strip().casefold()


def _references_folder(table: type[CatalogModel] | type[DeletedModel], folder: str):
    prefix = folder.rstrip("/") + "/"
    return or_(
        col(table.file_url).startswith(prefix, autoescape=True),
        # images is a JSON list of paths
        cast(col(table.images), String).contains(f'"{prefix}', autoescape=True),
    )


@dataclass
class LogFilters:
    action: str | None = None
    user: str | None = None
    date_from: date | None = None
    date_to: date | None = None


class ModelRepository:
    """Repository for catalogue model persistence."""

    def __init__(self, session: Session):
        self.session = session

    def find_by_id(self, model_id: str) -> CatalogModel | None:
        return self.session.get(CatalogModel, model_id)

    def find_all(
        self,
        project_id: str | None = None,
        sphere_id: str | None = None,
        marked_for_deletion: bool | None = None,
    ) -> list[CatalogModel]:
        statement = select(CatalogModel).options(
            selectinload(CatalogModel.author),  # type: ignore[arg-type]
            selectinload(CatalogModel.marked_by),  # type: ignore[arg-type]
        )
        if project_id is not None:
            statement = statement.where(
                col(CatalogModel.id).in_(
                    select(ModelProjectLink.model_id).where(
                        ModelProjectLink.project_id == project_id
                    )
                )
            )
        if sphere_id is not None:
            statement = statement.where(
                col(CatalogModel.id).in_(
                    select(ModelSphereLink.model_id).where(
                        ModelSphereLink.sphere_id == sphere_id
                    )
                )
            )
        if marked_for_deletion is not None:
            statement = statement.where(
                CatalogModel.marked_for_deletion == marked_for_deletion
            )
        statement = statement.order_by(col(CatalogModel.created_at).desc())
        return list(self.session.exec(statement).all())

    def title_taken(self, title: str, exclude_id: str | None = None) -> bool:
        statement = select(CatalogModel.id).where(
            CatalogModel.title_key == title_key(title)
        )
        if exclude_id is not None:
            statement = statement.where(CatalogModel.id != exclude_id)
        return self.session.exec(statement).first() is not None

    def mark_for_deletion(
        self, model_id: str, marked_by_id: str, comment: str | None
    ) -> bool:
        """ACTIVE -> MARKED. Returns False if the model was not ACTIVE."""
        result = self.session.exec(
            update(CatalogModel)
            .where(
                col(CatalogModel.id) == model_id,
                col(CatalogModel.marked_for_deletion).is_(False),
            )
            .values(
                marked_for_deletion=True,
                marked_by_id=marked_by_id,
                marked_at=datetime.now(),
                deletion_comment=comment,
            )
        )
        return result.rowcount == 1

    def clear_deletion_mark(self, model_id: str) -> bool:
        """MARKED -> ACTIVE. Returns False if the model was not MARKED."""
        result = self.session.exec(
            update(CatalogModel)
            .where(
                col(CatalogModel.id) == model_id,
                col(CatalogModel.marked_for_deletion).is_(True),
            )
            .values(
                marked_for_deletion=False,
                marked_by_id=None,
                marked_at=None,
                deletion_comment=None,
            )
        )
        return result.rowcount == 1

    def folder_in_use(self, folder: str, exclude_id: str | None = None) -> bool:
        """True if another model keeps an archive or screenshot under ``folder``."""
        statement = select(CatalogModel.id).where(
            _references_folder(CatalogModel, folder)
        )
        if exclude_id is not None:
            statement = statement.where(CatalogModel.id != exclude_id)
        return self.session.exec(statement).first() is not None

    def delete_if_marked(self, model_id: str, marked: bool) -> bool:
        """Delete the row only if its mark still equals ``marked``."""
        result = self.session.exec(
            delete(CatalogModel)
            .where(
                col(CatalogModel.id) == model_id,
                col(CatalogModel.marked_for_deletion).is_(marked),
            )
        )
        return result.rowcount == 1


class DeletedModelRepository:
    def __init__(self, session: Session):
        self.session = session

    def find_by_id(self, deleted_id: str) -> DeletedModel | None:
        return self.session.get(DeletedModel, deleted_id)

    def find_page(self, page: int, limit: int) -> tuple[list[DeletedModel], int]:
        total = self.session.exec(select(func.count()).select_from(DeletedModel)).one()
        rows = self.session.exec(
            select(DeletedModel)
            .options(selectinload(DeletedModel.user))  # type: ignore[arg-type]
            .order_by(col(DeletedModel.deleted_at).desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        return list(rows), total

    def find_all(self) -> list[DeletedModel]:
        return list(
            self.session.exec(
                select(DeletedModel).order_by(col(DeletedModel.deleted_at))
            ).all()
        )

    def find_latest_by_title(self, title: str) -> DeletedModel | None:
        return self.session.exec(
            select(DeletedModel)
            .where(DeletedModel.title == title)
            .order_by(col(DeletedModel.deleted_at).desc())
        ).first()

    def folder_in_use(self, folder: str, exclude_id: str | None = None) -> bool:
        """True if a tombstone awaiting purge still has assets under ``folder``."""
        statement = select(DeletedModel.id).where(
            _references_folder(DeletedModel, folder)
        )
        if exclude_id is not None:
            statement = statement.where(DeletedModel.id != exclude_id)
        return self.session.exec(statement).first() is not None

    def delete(self, deleted_id: str) -> bool:
        result = self.session.exec(
            delete(DeletedModel)
            .where(col(DeletedModel.id) == deleted_id)
        )
        return result.rowcount == 1


class LogRepository:
    def __init__(self, session: Session):
        self.session = session

    def add(
        self, action: str, user_id: str | None, model_id: str | None = None
    ) -> LogEntry:
        entry = LogEntry(
            action=action,
            action_key=action.casefold(),
            user_id=user_id,
            model_id=model_id,
        )
        self.session.add(entry)
        self.session.commit()
        self.session.refresh(entry)
        return entry

    def find_page(
        self, filters: LogFilters, page: int, page_size: int
    ) -> tuple[list[LogEntry], int]:
        """Newest-first page of entries matching ``filters`` plus the match count."""
        conditions = []
        if filters.action:
            conditions.append(
                col(LogEntry.action_key).contains(
                    filters.action.casefold(), autoescape=True
                )
            )
        if filters.user:
            conditions.append(
                col(LogEntry.user_id).in_(self._matching_user_ids(filters.user))
            )
        if filters.date_from:
            start = datetime.combine(filters.date_from, time.min)
            conditions.append(col(LogEntry.created_at) >= start)
        if filters.date_to:
            # Inclusive of the whole final day
            conditions.append(
                col(LogEntry.created_at) <= datetime.combine(filters.date_to, time.max)
            )

        total = self.session.exec(
            select(func.count()).select_from(LogEntry).where(*conditions)
        ).one()
        rows = self.session.exec(
            select(LogEntry)
            .where(*conditions)
            .options(
                selectinload(LogEntry.user),  # type: ignore[arg-type]
                selectinload(LogEntry.model),  # type: ignore[arg-type]
            )
            .order_by(col(LogEntry.created_at).desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).all()
        return list(rows), total

    def _matching_user_ids(self, needle: str) -> list[str]:
        needle = needle.strip().casefold()
        return [
            user.id
            for user in self.session.exec(select(User)).all()
            if needle in user.name.casefold() or needle in user.email.casefold()
        ]


class UserRepository:
    def __init__(self, session: Session):
        self.session = session

    def find_by_id(self, user_id: str) -> User | None:
        return self.session.get(User, user_id)

    def find_by_email(self, email: str) -> User | None:
        return self.session.exec(
            select(User).where(User.email == email.strip().lower())
        ).first()

    def find_all(self) -> list[User]:
        return list(
            self.session.exec(
                select(User)
                .options(selectinload(User.sphere))  # type: ignore[arg-type]
                .order_by(col(User.created_at).desc())
            ).all()
        )

    def authored_model_count(self, user_id: str) -> int:
        return self.session.exec(
            select(func.count())
            .select_from(CatalogModel)
            .where(CatalogModel.author_id == user_id)
        ).one()


class ProjectRepository:
    def __init__(self, session: Session):
        self.session = session

    def find_by_id(self, project_id: str) -> Project | None:
        return self.session.get(Project, project_id)

    def find_by_ids(self, project_ids: list[str]) -> list[Project]:
        if not project_ids:
            return []
        return list(
            self.session.exec(
                select(Project).where(col(Project.id).in_(project_ids))
            ).all()
        )

    def find_all(self) -> list[Project]:
        return list(
            self.session.exec(
                select(Project)
                .options(selectinload(Project.models))  # type: ignore[arg-type]
                .order_by(col(Project.created_at).desc())
            ).all()
        )

    def name_taken(self, name: str, exclude_id: str | None = None) -> bool:
        statement = select(Project.id).where(
            func.lower(Project.name) == name.strip().lower()
        )
        if exclude_id is not None:
            statement = statement.where(Project.id != exclude_id)
        return self.session.exec(statement).first() is not None


class SphereRepository:
    def __init__(self, session: Session):
        self.session = session

    def find_by_id(self, sphere_id: str) -> Sphere | None:
        return self.session.get(Sphere, sphere_id)

    def find_by_ids(self, sphere_ids: list[str]) -> list[Sphere]:
        if not sphere_ids:
            return []
        return list(
            self.session.exec(
                select(Sphere).where(col(Sphere.id).in_(sphere_ids))
            ).all()
        )

    def find_all(self) -> list[Sphere]:
        return list(self.session.exec(select(Sphere).order_by(Sphere.name)).all())

    def name_taken(self, name: str, exclude_id: str | None = None) -> bool:
        key = name.strip().casefold()
        return any(
            sphere.name.casefold() == key and sphere.id != exclude_id
            for sphere in self.find_all()
        )

    def model_count(self, sphere_id: str) -> int:
        return self.session.exec(
            select(func.count())
            .select_from(ModelSphereLink)
            .where(ModelSphereLink.sphere_id == sphere_id)
        ).one()
