"""Priority classification and ordering of tasks relative to a viewer.

A task lands in one of three tiers:

1. URGENT: has a due date on or before today and is not resolved for the
   relevant party (the viewer when assigned, otherwise the whole group).
2. NORMAL: everything else that is still open.
3. RESOLVED: done for the relevant party.

Within a tier, dated tasks come before undated ones, earlier dates first,
then newest created first. The pending ordering additionally lifts tasks
with unread foreign comments to the front of their tier.
"""

from datetime import date, datetime
from enum import IntEnum

from verticals.tasks.completion import is_resolved_for
from verticals.tasks.models.schemas import Task


class PriorityTier(IntEnum):
    URGENT = 1
    NORMAL = 2
    RESOLVED = 3


def priority_tier(task: Task, viewer_id: str, today: date) -> PriorityTier:
    if is_resolved_for(task, viewer_id):
        return PriorityTier.RESOLVED
    if task.due_date is not None and task.due_date <= today:
        return PriorityTier.URGENT
    return PriorityTier.NORMAL


def is_overdue(task: Task, viewer_id: str, today: date) -> bool:
    return (
        task.due_date is not None
        and task.due_date < today
        and not is_resolved_for(task, viewer_id)
    )


def is_due_today(task: Task, viewer_id: str, today: date) -> bool:
    return task.due_date == today and not is_resolved_for(task, viewer_id)


def _date_key(task: Task) -> tuple:
    # Dated before undated; ascending date; newest created first.
    if task.due_date is None:
        return (1, 0, -task.created_at.timestamp())
    return (0, task.due_date.toordinal(), -task.created_at.timestamp())


def sort_key(task: Task, viewer_id: str, today: date) -> tuple:
    return (int(priority_tier(task, viewer_id, today)), *_date_key(task))


def pending_sort_key(
    task: Task,
    viewer_id: str,
    today: date,
    latest_unread_at: datetime | None,
) -> tuple:
    """Like sort_key, but unread threads lead their tier, newest first."""
    tier = int(priority_tier(task, viewer_id, today))
    if latest_unread_at is None:
        return (tier, 1, 0.0, *_date_key(task))
    return (tier, 0, -latest_unread_at.timestamp(), *_date_key(task))


def sort_tasks(tasks: list[Task], viewer_id: str, today: date) -> list[Task]:
    return sorted(tasks, key=lambda t: sort_key(t, viewer_id, today))
