"""Audit trail: append-only action log and its paginated query."""

import math
import re
from dataclasses import dataclass
from typing import Final

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from ..domain.constants import LOG_PAGE_SIZE
from ..infrastructure.database.models import DeletedModel, LogEntry
from ..infrastructure.database.repositories import (
    DeletedModelRepository,
    LogFilters,
    LogRepository,
)
from ..logging_config import get_logger
from ..metrics import record_audit_write_failure

logger: Final = get_logger(__name__)

MODEL_DELETED_ACTION: Final = re.compile(r"^Model deleted \((?P<title>.+)\)$")


def model_deleted_action(title: str) -> str:
    return f"Model deleted ({title})"


class AuditLogRecorder:
    """Writes log entries after the business change has committed.

    A failed write is logged and counted but never reaches the caller: the
    action it describes has already happened.
    """

    def __init__(self, session: Session):
        self.session = session
        self.log_repo = LogRepository(session)

    def record(
        self, action: str, user_id: str | None, model_id: str | None = None
    ) -> LogEntry | None:
        try:
            return self.log_repo.add(action, user_id=user_id, model_id=model_id)
        except SQLAlchemyError as e:
            self.session.rollback()
            record_audit_write_failure()
            logger.error(
                "Failed to write audit log entry",
                action=action,
                user_id=user_id,
                error=str(e),
            )
            return None


@dataclass
class LogView:
    entry: LogEntry
    deleted_model: DeletedModel | None = None


@dataclass
class LogPage:
    logs: list[LogView]
    total_pages: int
    current_page: int
    total_count: int


def query_logs(session: Session, filters: LogFilters, page: int = 1) -> LogPage:
    """Newest-first page of log entries, fixed page size.

    Entries recording a model deletion are enriched with the tombstone of that
    model while it still exists.
    """
    page = max(page, 1)
    entries, total = LogRepository(session).find_page(filters, page, LOG_PAGE_SIZE)

    deleted_repo = DeletedModelRepository(session)
    views = []
    for entry in entries:
        match = MODEL_DELETED_ACTION.match(entry.action)
        tombstone = (
            deleted_repo.find_latest_by_title(match.group("title")) if match else None
        )
        views.append(LogView(entry=entry, deleted_model=tombstone))

    return LogPage(
        logs=views,
        total_pages=math.ceil(total / LOG_PAGE_SIZE),
        current_page=page,
        total_count=total,
    )
