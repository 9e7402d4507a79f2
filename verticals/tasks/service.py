"""Task service: the mutation boundary of the task vertical.

Every write goes through here. The service checks permissions, validates
input, calls the repository, then fires notifications. Reads build the
TaskBoard through the orchestrator from a fresh repository snapshot.

Each operation runs inside a tracing span and logs one event on success.
"""

from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Callable, Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from core.integrations.webhooks import WebhookEmitter, WebhookEvent, WebhookRegistration
from core.logging import get_logger
from core.observability.otel_setup import create_operation_span
from core.resilience.idempotency import IdempotencyStore
from verticals.tasks.completion import toggle_member
from verticals.tasks.config import TaskConfig
from verticals.tasks.models.schemas import (
    Comment,
    CommentCreate,
    NudgeResult,
    Task,
    TaskBoard,
    TaskCreate,
    TaskFilters,
    TaskUpdate,
    TaskView,
    Viewer,
)
from verticals.tasks.notifications import (
    CompositeNotifier,
    DatabaseNotifier,
    NotificationDispatcher,
    NotificationKind,
    WebhookNotifier,
    assignment_message,
    comment_message,
    shock_message,
)
from verticals.tasks.nudge import clear_shock, plan_nudge, restrict_to_assignees, union_shocked
from verticals.tasks.orchestrator import TaskListOrchestrator
from verticals.tasks.repository import NotificationRepository, ReadReceiptRepository, TaskRepository
from verticals.tasks.rules import can_delete, can_edit, can_toggle_priority, require_title
from verticals.tasks.tags import merge_edited_tags, normalize_tags, toggle_priority
from verticals.tasks.unread import (
    ReadReceiptWatermarkStore,
    SessionWatermarkStore,
    UnreadTracker,
    WatermarkStore,
)

logger = get_logger(__name__)


def _today() -> date:
    return datetime.now(timezone.utc).date()


class TaskService:
    """Task operations on behalf of a viewer."""

    def __init__(
        self,
        tasks: TaskRepository,
        tracker: UnreadTracker,
        dispatcher: NotificationDispatcher,
        config: Optional[TaskConfig] = None,
        idempotency: Optional[IdempotencyStore] = None,
        tracer=None,
        today: Callable[[], date] = _today,
    ):
        self.tasks = tasks
        self.tracker = tracker
        self.dispatcher = dispatcher
        self.config = config or TaskConfig.default()
        self.idempotency = idempotency or IdempotencyStore()
        self.tracer = tracer
        self.today = today
        self.orchestrator = TaskListOrchestrator(self.config)

    @contextmanager
    def _span(self, operation: str, task_id: Optional[str], viewer: Viewer):
        span = create_operation_span(self.tracer, operation, task_id, viewer.user_id)
        try:
            yield span
        finally:
            if span is not None:
                span.end()

    # -- Reads --

    async def list_board(self, viewer: Viewer, filters: Optional[TaskFilters] = None) -> TaskBoard:
        filters = filters or TaskFilters()
        tasks = await self.tasks.list_visible(viewer)
        await self.tracker.seed_many(tasks, viewer.user_id)
        watermarks = await self.tracker.watermarks(tasks, viewer.user_id)
        return self.orchestrator.build(tasks, viewer, filters, self.today(), watermarks)

    async def get_view(self, task_id: str, viewer: Viewer) -> TaskView:
        task = await self.tasks.get_visible(task_id, viewer)
        await self.tracker.seed_if_absent(task, viewer.user_id)
        watermarks = await self.tracker.watermarks([task], viewer.user_id)
        return self.orchestrator.view(task, viewer.user_id, self.today(), watermarks[task.id])

    # -- Create / edit / delete --

    async def create(
        self,
        payload: TaskCreate,
        viewer: Viewer,
        idempotency_key: Optional[str] = None,
    ) -> Task:
        """Create a task and notify its assignees.

        The row is committed before an Idempotency-Key is marked complete.
        """
        title = require_title(payload.title)

        async def _create() -> Task:
            sentinel = self.config.priority_tag
            tags = normalize_tags(payload.tags, sentinel)
            if payload.is_priority:
                tags.append(sentinel)
            with self._span("create", None, viewer):
                task = await self.tasks.create(
                    {
                        "title": title,
                        "description": payload.description,
                        "created_by": viewer.user_id,
                        "assigned_to": payload.assigned_to,
                        "due_date": payload.due_date,
                        "tags": tags,
                        "attachments": [a.model_dump() for a in payload.attachments],
                    }
                )
            notified = await self.dispatcher.send(
                [uid for uid in task.assigned_to if uid != viewer.user_id],
                assignment_message(task.title),
                NotificationKind.ASSIGNMENT,
                task.id,
            )
            await self.tasks.commit()
            logger.info(
                "tasks.created",
                extra={"task_id": task.id, "viewer_id": viewer.user_id, "notified": notified},
            )
            return task

        task, replayed = await self.idempotency.run_once(
            idempotency_key, viewer.user_id, "tasks.create", _create
        )
        if replayed:
            logger.info("tasks.create.replayed", extra={"task_id": task.id})
        return task

    async def edit(self, task_id: str, payload: TaskUpdate, viewer: Viewer) -> Task:
        """Full metadata edit by the creator.

        Newly added assignees are notified. Users dropped from the assignee
        set lose their shock marker. The priority flag survives unless
        ``is_priority`` is given.
        """
        task = await self.tasks.get_visible(task_id, viewer)
        can_edit(task, viewer.user_id).enforce()

        fields = payload.model_dump(exclude_unset=True)
        is_priority = fields.pop("is_priority", None)
        if "title" in fields:
            fields["title"] = require_title(fields["title"])
        if "tags" in fields or is_priority is not None:
            fields["tags"] = merge_edited_tags(
                task.tags,
                fields.get("tags") if fields.get("tags") is not None else _visible(task, self.config),
                self.config.priority_tag,
                is_priority,
            )
        added: list[str] = []
        if fields.get("assigned_to") is not None:
            fields["shocked_users"] = restrict_to_assignees(task.shocked_users, fields["assigned_to"])
            added = [uid for uid in fields["assigned_to"] if uid not in task.assigned_to]
        elif "assigned_to" in fields:
            fields.pop("assigned_to")

        with self._span("edit", task_id, viewer):
            updated = await self.tasks.update(task_id, fields)

        await self.dispatcher.send(
            [uid for uid in added if uid != viewer.user_id],
            assignment_message(updated.title),
            NotificationKind.ASSIGNMENT,
            updated.id,
        )
        logger.info(
            "tasks.edited",
            extra={"task_id": task_id, "viewer_id": viewer.user_id, "added_assignees": len(added)},
        )
        return updated

    async def delete(self, task_id: str, viewer: Viewer) -> None:
        task = await self.tasks.get_visible(task_id, viewer)
        can_delete(task, viewer.user_id).enforce()
        with self._span("delete", task_id, viewer):
            await self.tasks.delete(task_id)
        logger.info("tasks.deleted", extra={"task_id": task_id, "viewer_id": viewer.user_id})

    # -- Completion --

    async def toggle_completion(self, task_id: str, viewer: Viewer) -> Task:
        """Flip the viewer's own membership in ``completed_by``."""
        await self.tasks.get_visible(task_id, viewer)
        uid = viewer.user_id
        with self._span("toggle_complete", task_id, viewer):
            task = await self.tasks.mutate_set(
                task_id, "completed_by", lambda current: toggle_member(current, uid)
            )
            done = uid in task.completed_by
            if done and self.config.clear_shock_on_complete and uid in task.shocked_users:
                task = await self.tasks.mutate_set(
                    task_id, "shocked_users", lambda current: clear_shock(current, uid)
                )
        logger.info(
            "tasks.completion.toggled",
            extra={"task_id": task_id, "viewer_id": uid, "done": done},
        )
        return task

    # -- Nudge --

    async def nudge(self, task_id: str, viewer: Viewer) -> NudgeResult:
        """Shock every assignee who has not completed the task.

        Nothing is written and nobody is notified when everyone is done.
        """
        task = await self.tasks.get_visible(task_id, viewer)
        plan = plan_nudge(task)
        if plan.is_noop:
            logger.info("tasks.nudge.noop", extra={"task_id": task_id, "viewer_id": viewer.user_id})
            return NudgeResult(
                task_id=task_id,
                pending_assignees=[],
                shocked_users=plan.shocked_users,
                notified=0,
            )

        with self._span("nudge", task_id, viewer):
            task = await self.tasks.mutate_set(
                task_id, "shocked_users", lambda current: union_shocked(current, plan.pending)
            )
        notified = await self.dispatcher.send(
            plan.pending,
            shock_message(task.title, viewer.user_id),
            NotificationKind.SHOCK,
            task_id,
        )
        logger.info(
            "tasks.nudge.sent",
            extra={"task_id": task_id, "viewer_id": viewer.user_id, "notified": notified},
        )
        return NudgeResult(
            task_id=task_id,
            pending_assignees=plan.pending,
            shocked_users=task.shocked_users,
            notified=notified,
        )

    # -- Priority --

    async def toggle_priority(self, task_id: str, viewer: Viewer) -> Task:
        task = await self.tasks.get_visible(task_id, viewer)
        can_toggle_priority(task, viewer.user_id).enforce()
        sentinel = self.config.priority_tag
        with self._span("toggle_priority", task_id, viewer):
            task = await self.tasks.mutate_set(
                task_id, "tags", lambda current: toggle_priority(current, sentinel)
            )
        logger.info(
            "tasks.priority.toggled",
            extra={"task_id": task_id, "viewer_id": viewer.user_id, "is_priority": sentinel in task.tags},
        )
        return task

    # -- Comments --

    async def add_comment(
        self,
        task_id: str,
        payload: CommentCreate,
        viewer: Viewer,
        idempotency_key: Optional[str] = None,
    ) -> Task:
        """Append a comment and notify every assignee except the author."""
        await self.tasks.get_visible(task_id, viewer)

        async def _append() -> Task:
            comment = Comment(
                author_id=viewer.user_id,
                text=payload.text,
                attachments=payload.attachments,
            )
            with self._span("comment", task_id, viewer):
                task = await self.tasks.append_comment(task_id, comment)
            notified = await self.dispatcher.send(
                [uid for uid in task.assigned_to if uid != viewer.user_id],
                comment_message(
                    task.title, payload.text, self.config.notifications.comment_preview_length
                ),
                NotificationKind.COMMENT,
                task_id,
            )
            await self.tasks.commit()
            logger.info(
                "tasks.comment.added",
                extra={"task_id": task_id, "viewer_id": viewer.user_id, "notified": notified},
            )
            return task

        task, _ = await self.idempotency.run_once(
            idempotency_key, viewer.user_id, f"tasks.comment:{task_id}", _append
        )
        return task

    async def mark_comments_seen(self, task_id: str, viewer: Viewer) -> TaskView:
        """Advance the viewer's watermark and clear their own shock marker."""
        task = await self.tasks.get_visible(task_id, viewer)
        uid = viewer.user_id
        with self._span("comments_seen", task_id, viewer):
            moved = await self.tracker.mark_seen(task, uid)
            if uid in task.shocked_users:
                task = await self.tasks.mutate_set(
                    task_id, "shocked_users", lambda current: clear_shock(current, uid)
                )
        logger.info(
            "tasks.comments.seen",
            extra={"task_id": task_id, "viewer_id": uid, "watermark_moved": moved},
        )
        watermarks = await self.tracker.watermarks([task], uid)
        return self.orchestrator.view(task, uid, self.today(), watermarks[task.id])


def _visible(task: Task, config: TaskConfig) -> list[str]:
    return [t for t in task.tags if t != config.priority_tag]


# ---------------------------------------------------------------------------
# FastAPI dependency wiring
# ---------------------------------------------------------------------------

_config: Optional[TaskConfig] = None
_session_watermarks = SessionWatermarkStore()
_idempotency = IdempotencyStore()
_emitter: Optional[WebhookEmitter] = None
_tracer = None


def configure(config: Optional[TaskConfig] = None, tracer=None) -> TaskConfig:
    """Install process-wide settings; called from the app lifespan."""
    global _config, _tracer
    _config = config or TaskConfig.from_env()
    _tracer = tracer
    return _config


def get_task_config() -> TaskConfig:
    global _config
    if _config is None:
        _config = TaskConfig.from_env()
    return _config


def build_watermark_store(config: TaskConfig, session: AsyncSession) -> WatermarkStore:
    if config.watermark_backend == "session":
        return _session_watermarks
    return ReadReceiptWatermarkStore(ReadReceiptRepository(session))


def get_task_service(
    session: AsyncSession = Depends(get_session),
    config: TaskConfig = Depends(get_task_config),
) -> TaskService:
    """FastAPI dependency for TaskService."""
    return TaskService(
        tasks=TaskRepository(session),
        tracker=UnreadTracker(build_watermark_store(config, session)),
        dispatcher=NotificationDispatcher(_notifier(config, session)),
        config=config,
        idempotency=_idempotency,
        tracer=_tracer,
    )


def _notifier(config: TaskConfig, session: AsyncSession):
    notifier = DatabaseNotifier(NotificationRepository(session))
    emitter = _webhook_emitter(config)
    if emitter is None:
        return notifier
    return CompositeNotifier([notifier, WebhookNotifier(emitter)])


def _webhook_emitter(config: TaskConfig) -> Optional[WebhookEmitter]:
    global _emitter
    settings = config.notifications
    if not settings.webhook_url:
        return None
    if _emitter is None:
        _emitter = WebhookEmitter(max_retries=settings.webhook_max_retries)
        _emitter.register(
            WebhookRegistration(
                url=settings.webhook_url,
                events=[e.value for e in WebhookEvent],
                secret=settings.webhook_secret,
            )
        )
    return _emitter
