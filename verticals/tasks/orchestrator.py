"""Task list orchestration: filter, sort and section tasks for one viewer.

Stateless. Every call works from the repository snapshot and the viewer's
current watermarks, and produces three views:

- assigned_to_me: tasks the viewer is assigned to
- created_by_me: tasks the viewer created
- all_tasks: every visible task, admins only

Each view runs visibility -> criteria -> sort on its own. A task can show up
in more than one view.
"""

from datetime import date, datetime
from typing import Mapping, Optional

from verticals.tasks.completion import (
    is_done_for,
    is_globally_done,
    is_resolved_for,
    pending_assignees,
)
from verticals.tasks.config import TaskConfig
from verticals.tasks.models.schemas import (
    Briefing,
    Task,
    TaskBoard,
    TaskFilters,
    TaskView,
    Viewer,
)
from verticals.tasks.priority import (
    is_due_today,
    is_overdue,
    pending_sort_key,
    priority_tier,
    sort_key,
)
from verticals.tasks.rules import can_view
from verticals.tasks.tags import display_tags, is_priority
from verticals.tasks.unread import count_unread, latest_unread_at


def matches_filters(task: Task, viewer_id: str, filters: TaskFilters) -> bool:
    if filters.type != "all":
        resolved = is_resolved_for(task, viewer_id)
        if filters.type == "completed" and not resolved:
            return False
        if filters.type == "pending" and resolved:
            return False
    if filters.assignee and filters.assignee not in task.assigned_to:
        return False
    if filters.assigner and task.created_by != filters.assigner:
        return False
    if filters.month and _month_of(task) != filters.month:
        return False
    if filters.title and filters.title.casefold() not in task.title.casefold():
        return False
    return True


def _month_of(task: Task) -> str:
    # Undated tasks are filed under the month they were created.
    if task.due_date is not None:
        return task.due_date.strftime("%Y-%m")
    return task.created_at.strftime("%Y-%m")


class TaskListOrchestrator:
    """Builds TaskBoard view-models."""

    def __init__(self, config: TaskConfig):
        self.config = config

    def view(
        self,
        task: Task,
        viewer_id: str,
        today: date,
        watermark: Optional[datetime] = None,
    ) -> TaskView:
        sentinel = self.config.priority_tag
        return TaskView(
            task=task,
            priority_tier=int(priority_tier(task, viewer_id, today)),
            unread_count=count_unread(task, viewer_id, watermark),
            is_globally_done=is_globally_done(task),
            is_done_for_viewer=is_done_for(task, viewer_id),
            is_shocked_for_viewer=viewer_id in task.shocked_users,
            is_priority=is_priority(task, sentinel),
            display_tags=display_tags(task, self.config.tag_palette, sentinel),
            pending_assignees=pending_assignees(task),
        )

    def build(
        self,
        tasks: list[Task],
        viewer: Viewer,
        filters: TaskFilters,
        today: date,
        watermarks: Mapping[str, Optional[datetime]],
    ) -> TaskBoard:
        uid = viewer.user_id
        visible = [t for t in tasks if can_view(t, viewer).passed]
        matching = [t for t in visible if matches_filters(t, uid, filters)]

        assigned = [t for t in matching if uid in t.assigned_to]
        created = [t for t in matching if t.created_by == uid]

        return TaskBoard(
            assigned_to_me=self._pending_order(assigned, uid, today, watermarks),
            created_by_me=self._pending_order(created, uid, today, watermarks),
            all_tasks=(
                self._standard_order(matching, uid, today, watermarks)
                if viewer.is_admin
                else None
            ),
            briefing=self.briefing(visible, uid, today, watermarks),
        )

    def _standard_order(self, tasks, viewer_id, today, watermarks) -> list[TaskView]:
        ordered = sorted(tasks, key=lambda t: sort_key(t, viewer_id, today))
        return [self.view(t, viewer_id, today, watermarks.get(t.id)) for t in ordered]

    def _pending_order(self, tasks, viewer_id, today, watermarks) -> list[TaskView]:
        ordered = sorted(
            tasks,
            key=lambda t: pending_sort_key(
                t, viewer_id, today, latest_unread_at(t, viewer_id, watermarks.get(t.id))
            ),
        )
        return [self.view(t, viewer_id, today, watermarks.get(t.id)) for t in ordered]

    def briefing(self, tasks, viewer_id, today, watermarks) -> Briefing:
        """Headline counts for the viewer's own open work."""
        mine = [t for t in tasks if viewer_id in t.assigned_to and not is_done_for(t, viewer_id)]
        return Briefing(
            pending=len(mine),
            due_today=sum(1 for t in mine if is_due_today(t, viewer_id, today)),
            overdue=sum(1 for t in mine if is_overdue(t, viewer_id, today)),
            shocked=sum(1 for t in tasks if viewer_id in t.shocked_users),
            unread_comments=sum(
                count_unread(t, viewer_id, watermarks.get(t.id)) for t in tasks
            ),
        )
