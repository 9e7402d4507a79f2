"""SQLAlchemy models for the task vertical.

Set-valued task fields (assignees, completions, tags, shocked users) and the
append-only comment thread are JSON arrays on the task row; they are only
ever rewritten under a row lock by the repository. The to_dict() method
provides the standard serialisation interface used by repositories.
"""

from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from core.models.base import Base, JSONList, RecordMixin, as_utc


class TaskRow(RecordMixin, Base):
    """A task with its assignees, completion set and comment thread."""

    __tablename__ = "tasks"

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)

    assigned_to: Mapped[list] = mapped_column(JSONList, nullable=False, default=list)
    completed_by: Mapped[list] = mapped_column(JSONList, nullable=False, default=list)
    tags: Mapped[list] = mapped_column(JSONList, nullable=False, default=list)
    shocked_users: Mapped[list] = mapped_column(JSONList, nullable=False, default=list)
    comments: Mapped[list] = mapped_column(JSONList, nullable=False, default=list)
    attachments: Mapped[list] = mapped_column(JSONList, nullable=False, default=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "created_by": self.created_by,
            "due_date": self.due_date,
            "assigned_to": list(self.assigned_to or []),
            "completed_by": list(self.completed_by or []),
            "tags": list(self.tags or []),
            "shocked_users": list(self.shocked_users or []),
            "comments": list(self.comments or []),
            "attachments": list(self.attachments or []),
            "created_at": as_utc(self.created_at),
        }


class TaskReadReceipt(RecordMixin, Base):
    """Per-user comment watermark for a task."""

    __tablename__ = "task_read_receipts"
    __table_args__ = (UniqueConstraint("user_id", "task_id", name="uq_read_receipt_user_task"),)

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    task_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    seen_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "task_id": self.task_id,
            "seen_at": as_utc(self.seen_at),
        }


class NotificationRow(RecordMixin, Base):
    """A message delivered to one user."""

    __tablename__ = "notifications"

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    task_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "kind": self.kind,
            "message": self.message,
            "task_id": self.task_id,
            "read": self.read,
            "created_at": as_utc(self.created_at),
        }
