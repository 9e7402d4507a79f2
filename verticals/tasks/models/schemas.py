"""Pydantic schemas for task snapshots, requests and view-models."""

import uuid
from datetime import date, datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def unique(values: list[str]) -> list[str]:
    """Drop duplicates, keeping first-seen order."""
    return list(dict.fromkeys(values))


def _utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Domain snapshots
# ---------------------------------------------------------------------------

class Viewer(BaseModel):
    """The user a request acts as."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    is_admin: bool = False


class Attachment(BaseModel):
    """Opaque file reference; extra keys from the file store are kept."""

    model_config = ConfigDict(extra="allow")

    name: str
    url: str


class Comment(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    author_id: str
    text: str
    attachments: list[Attachment] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator("created_at")
    @classmethod
    def utc_created(cls, value: datetime) -> datetime:
        return _utc(value)


class Task(BaseModel):
    """A task as read from the repository."""

    id: str
    title: str
    description: Optional[str] = None
    created_by: str
    assigned_to: list[str] = Field(default_factory=list)
    due_date: Optional[date] = None
    completed_by: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    shocked_users: list[str] = Field(default_factory=list)
    comments: list[Comment] = Field(default_factory=list)
    attachments: list[Attachment] = Field(default_factory=list)
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def utc_created(cls, value: datetime) -> datetime:
        return _utc(value)

    @field_validator("assigned_to", "completed_by", "tags", "shocked_users", mode="before")
    @classmethod
    def as_set(cls, value):
        return unique(list(value or []))


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class TaskCreate(BaseModel):
    title: str
    description: Optional[str] = None
    assigned_to: list[str] = Field(default_factory=list)
    due_date: Optional[date] = None
    tags: list[str] = Field(default_factory=list)
    attachments: list[Attachment] = Field(default_factory=list)
    is_priority: bool = False


class TaskUpdate(BaseModel):
    """Full metadata edit. Unset fields are left alone."""

    title: Optional[str] = None
    description: Optional[str] = None
    assigned_to: Optional[list[str]] = None
    due_date: Optional[date] = None
    tags: Optional[list[str]] = None
    is_priority: Optional[bool] = None


class CommentCreate(BaseModel):
    text: str = Field(..., min_length=1)
    attachments: list[Attachment] = Field(default_factory=list)


class TaskFilters(BaseModel):
    """List criteria, AND-combined."""

    type: Literal["all", "pending", "completed"] = "all"
    assignee: Optional[str] = None
    assigner: Optional[str] = None
    month: Optional[str] = Field(None, pattern=r"^\d{4}-(0[1-9]|1[0-2])$")
    title: Optional[str] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------

class TagView(BaseModel):
    label: str
    color: str


class TaskView(BaseModel):
    task: Task
    priority_tier: int
    unread_count: int = 0
    is_globally_done: bool
    is_done_for_viewer: bool
    is_shocked_for_viewer: bool
    is_priority: bool
    display_tags: list[TagView] = Field(default_factory=list)
    pending_assignees: list[str] = Field(default_factory=list)


class Briefing(BaseModel):
    pending: int = 0
    due_today: int = 0
    overdue: int = 0
    shocked: int = 0
    unread_comments: int = 0


class TaskBoard(BaseModel):
    assigned_to_me: list[TaskView] = Field(default_factory=list)
    created_by_me: list[TaskView] = Field(default_factory=list)
    all_tasks: Optional[list[TaskView]] = None
    briefing: Briefing = Field(default_factory=Briefing)


class NudgeResult(BaseModel):
    task_id: str
    pending_assignees: list[str]
    shocked_users: list[str]
    notified: int


class NotificationResponse(BaseModel):
    id: str
    user_id: str
    kind: str
    message: str
    task_id: Optional[str] = None
    read: bool = False
    created_at: datetime
