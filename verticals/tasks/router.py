"""Tasks API router.

Presentation boundary for the task engine:
- Board listing with filters as query parameters
- CRUD on task metadata (creator only for edit/delete)
- Per-user completion toggle, nudge and priority toggle
- Comments with an unread watermark
- The viewer's notification inbox

Identity comes from the viewer middleware; every mutation goes through
TaskService, and the client re-lists after a confirmed mutation.
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Header, Query, Response

from api.middleware import get_current_viewer
from verticals.tasks.models.schemas import (
    CommentCreate,
    NotificationResponse,
    NudgeResult,
    Task,
    TaskBoard,
    TaskCreate,
    TaskFilters,
    TaskUpdate,
    TaskView,
    Viewer,
)
from verticals.tasks.repository import NotificationRepository, get_notification_repository
from verticals.tasks.service import TaskService, get_task_service

router = APIRouter()


def get_filters(
    type: Literal["all", "pending", "completed"] = "all",
    assignee: Optional[str] = None,
    assigner: Optional[str] = None,
    month: Optional[str] = Query(None, pattern=r"^\d{4}-(0[1-9]|1[0-2])$"),
    title: Optional[str] = None,
) -> TaskFilters:
    return TaskFilters(type=type, assignee=assignee, assigner=assigner, month=month, title=title)


# ============================================================================
# Task Endpoints
# ============================================================================

@router.get("/tasks", response_model=TaskBoard)
async def list_tasks(
    filters: TaskFilters = Depends(get_filters),
    viewer: Viewer = Depends(get_current_viewer),
    service: TaskService = Depends(get_task_service),
):
    """The viewer's task board: assigned, created and (admins) all tasks."""
    return await service.list_board(viewer, filters)


@router.post("/tasks", response_model=Task, status_code=201)
async def create_task(
    data: TaskCreate,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    viewer: Viewer = Depends(get_current_viewer),
    service: TaskService = Depends(get_task_service),
):
    return await service.create(data, viewer, idempotency_key)


@router.get("/tasks/{task_id}", response_model=TaskView)
async def get_task(
    task_id: str,
    viewer: Viewer = Depends(get_current_viewer),
    service: TaskService = Depends(get_task_service),
):
    return await service.get_view(task_id, viewer)


@router.patch("/tasks/{task_id}", response_model=Task)
async def update_task(
    task_id: str,
    data: TaskUpdate,
    viewer: Viewer = Depends(get_current_viewer),
    service: TaskService = Depends(get_task_service),
):
    """Edit task metadata. Creator only."""
    return await service.edit(task_id, data, viewer)


@router.delete("/tasks/{task_id}", status_code=204)
async def delete_task(
    task_id: str,
    viewer: Viewer = Depends(get_current_viewer),
    service: TaskService = Depends(get_task_service),
):
    await service.delete(task_id, viewer)
    return Response(status_code=204)


# ============================================================================
# Engagement Endpoints
# ============================================================================

@router.post("/tasks/{task_id}/toggle-complete", response_model=Task)
async def toggle_complete(
    task_id: str,
    viewer: Viewer = Depends(get_current_viewer),
    service: TaskService = Depends(get_task_service),
):
    """Flip the viewer's own completion."""
    return await service.toggle_completion(task_id, viewer)


@router.post("/tasks/{task_id}/nudge", response_model=NudgeResult)
async def nudge_task(
    task_id: str,
    viewer: Viewer = Depends(get_current_viewer),
    service: TaskService = Depends(get_task_service),
):
    return await service.nudge(task_id, viewer)


@router.post("/tasks/{task_id}/toggle-priority", response_model=Task)
async def toggle_task_priority(
    task_id: str,
    viewer: Viewer = Depends(get_current_viewer),
    service: TaskService = Depends(get_task_service),
):
    return await service.toggle_priority(task_id, viewer)


# ============================================================================
# Comment Endpoints
# ============================================================================

@router.post("/tasks/{task_id}/comments", response_model=Task, status_code=201)
async def add_comment(
    task_id: str,
    data: CommentCreate,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    viewer: Viewer = Depends(get_current_viewer),
    service: TaskService = Depends(get_task_service),
):
    return await service.add_comment(task_id, data, viewer, idempotency_key)


@router.post("/tasks/{task_id}/comments/seen", response_model=TaskView)
async def mark_comments_seen(
    task_id: str,
    viewer: Viewer = Depends(get_current_viewer),
    service: TaskService = Depends(get_task_service),
):
    """Advance the viewer's watermark and clear their own shock."""
    return await service.mark_comments_seen(task_id, viewer)


# ============================================================================
# Notification Endpoints
# ============================================================================

@router.get("/notifications", response_model=list[NotificationResponse])
async def list_notifications(
    limit: int = Query(50, ge=1, le=200),
    viewer: Viewer = Depends(get_current_viewer),
    repo: NotificationRepository = Depends(get_notification_repository),
):
    return await repo.list_for_user(viewer.user_id, limit=limit)
