"""Task repository: async database access with visibility filtering.

Extends BaseRepository with the task store's contract:
- list_visible / get_visible apply the "admin sees everything, others see
  what they created or are assigned to" rule
- mutate_set rewrites one set-valued column under a row lock
- append_comment appends to the thread under the same lock

Every SQLAlchemy failure surfaces as TransportError.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Callable

from fastapi import Depends
from sqlalchemy import or_, select, type_coerce
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from core.logging import get_logger
from core.models.base import as_utc
from patterns.repository import BaseRepository
from verticals.tasks.errors import NotFoundError, TransportError
from verticals.tasks.models.db_models import NotificationRow, TaskReadReceipt, TaskRow
from verticals.tasks.models.schemas import Comment, Task, Viewer, unique
from verticals.tasks.rules import can_view

logger = get_logger(__name__)

SET_COLUMNS = frozenset({"assigned_to", "completed_by", "tags", "shocked_users"})


@asynccontextmanager
async def _transport(operation: str):
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("tasks.repository.failed", extra={"operation": operation, "error": str(exc)})
        raise TransportError(f"Task store unavailable during {operation}") from exc


def _to_task(row: TaskRow) -> Task:
    return Task.model_validate(row.to_dict())


def _jsonable_comment(comment: Comment) -> dict:
    return comment.model_dump(mode="json")


def visibility_clause(viewer: Viewer, dialect_name: str) -> Any | None:
    """SQL form of the visibility rule, or None when it must run in Python.

    Admins see every row. On Postgres the assignee check is a JSONB
    containment (`@>`) against `assigned_to`. Other dialects have no
    portable equivalent, so `list_visible` falls back to `can_view`.
    """
    if viewer.is_admin or dialect_name != "postgresql":
        return None
    return or_(
        TaskRow.created_by == viewer.user_id,
        type_coerce(TaskRow.assigned_to, JSONB).contains([viewer.user_id]),
    )


# ---------------------------------------------------------------------------
# Task repository
# ---------------------------------------------------------------------------

class TaskRepository(BaseRepository[TaskRow]):
    """Repository for task CRUD, set mutation and comments."""

    model = TaskRow

    async def list_visible(self, viewer: Viewer) -> list[Task]:
        """Visible tasks, earliest due date first (undated last), then newest."""
        clause = visibility_clause(viewer, self.session.get_bind().dialect.name)
        criteria = () if clause is None else (clause,)
        async with _transport("list"):
            rows = await self.list_rows(
                *criteria,
                order_by=(
                    TaskRow.due_date.is_(None),
                    TaskRow.due_date.asc(),
                    TaskRow.created_at.desc(),
                )
            )
        tasks = [_to_task(r) for r in rows]
        return [t for t in tasks if can_view(t, viewer).passed]

    async def commit(self) -> None:
        """Make the current unit of work durable."""
        async with _transport("commit"):
            await self.session.commit()

    async def get(self, task_id: str) -> Task:
        async with _transport("get"):
            row = await self.get_row(task_id)
        if row is None:
            raise NotFoundError(task_id)
        return _to_task(row)

    async def get_visible(self, task_id: str, viewer: Viewer) -> Task:
        """Get a task, reporting invisible tasks as missing."""
        task = await self.get(task_id)
        if not can_view(task, viewer).passed:
            raise NotFoundError(task_id)
        return task

    async def create(self, data: dict[str, Any]) -> Task:
        data = dict(data)
        for column in SET_COLUMNS.intersection(data):
            data[column] = unique(list(data[column]))
        async with _transport("create"):
            row = await self.create_row(data)
        return _to_task(row)

    async def update(self, task_id: str, fields: dict[str, Any]) -> Task:
        fields = {k: v for k, v in fields.items() if k not in ("created_by", "comments")}
        for column in SET_COLUMNS.intersection(fields):
            fields[column] = unique(list(fields[column]))
        async with _transport("update"):
            row = await self.update_row(task_id, fields)
        if row is None:
            raise NotFoundError(task_id)
        return _to_task(row)

    async def delete(self, task_id: str) -> None:
        async with _transport("delete"):
            await ReadReceiptRepository(self.session).delete_for_task(task_id)
            deleted = await self.delete_row(task_id)
        if not deleted:
            raise NotFoundError(task_id)

    async def mutate_set(
        self,
        task_id: str,
        column: str,
        fn: Callable[[list[str]], list[str]],
    ) -> Task:
        """Apply ``fn`` to the current value of a set column and write it back.

        The row is locked for the rest of the transaction, so ``fn`` always
        sees the latest committed collection.
        """
        if column not in SET_COLUMNS:
            raise ValueError(f"{column} is not a set-valued column")
        async with _transport(f"mutate_set:{column}"):
            row = await self.get_row(task_id, for_update=True)
            if row is None:
                raise NotFoundError(task_id)
            setattr(row, column, unique(fn(list(getattr(row, column) or []))))
            await self.session.flush()
        return _to_task(row)

    async def append_comment(self, task_id: str, comment: Comment) -> Task:
        async with _transport("append_comment"):
            row = await self.get_row(task_id, for_update=True)
            if row is None:
                raise NotFoundError(task_id)
            row.comments = [*(row.comments or []), _jsonable_comment(comment)]
            await self.session.flush()
        return _to_task(row)


# ---------------------------------------------------------------------------
# Read receipts
# ---------------------------------------------------------------------------

class ReadReceiptRepository(BaseRepository[TaskReadReceipt]):
    """Persisted comment watermarks, one row per (user, task)."""

    model = TaskReadReceipt

    async def get_many(self, user_id: str, task_ids: list[str]) -> dict[str, datetime]:
        if not task_ids:
            return {}
        async with _transport("receipts.get"):
            rows = await self.list_rows(
                TaskReadReceipt.user_id == user_id,
                TaskReadReceipt.task_id.in_(task_ids),
            )
        return {r.task_id: as_utc(r.seen_at) for r in rows}

    async def upsert(self, user_id: str, task_id: str, seen_at: datetime) -> None:
        async with _transport("receipts.upsert"):
            stmt = (
                select(TaskReadReceipt)
                .where(TaskReadReceipt.user_id == user_id, TaskReadReceipt.task_id == task_id)
                .with_for_update()
            )
            result = await self.session.execute(stmt)
            row = result.scalar_one_or_none()
            if row is None:
                await self.create_row({"user_id": user_id, "task_id": task_id, "seen_at": seen_at})
            else:
                row.seen_at = seen_at
                await self.session.flush()

    async def delete_for_task(self, task_id: str) -> None:
        for row in await self.list_rows(TaskReadReceipt.task_id == task_id):
            await self.session.delete(row)


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

class NotificationRepository(BaseRepository[NotificationRow]):
    model = NotificationRow

    async def add(self, user_id: str, kind: str, message: str, task_id: str | None) -> dict:
        async with _transport("notifications.add"):
            async with self.session.begin_nested():
                row = await self.create_row(
                    {"user_id": user_id, "kind": kind, "message": message, "task_id": task_id}
                )
        return row.to_dict()

    async def list_for_user(self, user_id: str, limit: int = 50) -> list[dict]:
        async with _transport("notifications.list"):
            rows = await self.list_rows(
                NotificationRow.user_id == user_id,
                order_by=(NotificationRow.created_at.desc(),),
            )
        return [r.to_dict() for r in rows[:limit]]


# ---------------------------------------------------------------------------
# FastAPI dependency factories
# ---------------------------------------------------------------------------

def get_notification_repository(
    session: AsyncSession = Depends(get_session),
) -> NotificationRepository:
    return NotificationRepository(session)
