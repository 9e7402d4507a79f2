"""Completion rules: per-user and group completion over a task's sets.

Pure functions. The only write this module describes is the acting user's
own membership in ``completed_by``.
"""

from verticals.tasks.models.schemas import Task


def toggle_member(members: list[str], user_id: str) -> list[str]:
    """Remove ``user_id`` if present, otherwise append it."""
    if user_id in members:
        return [m for m in members if m != user_id]
    return [*members, user_id]


def toggle_completion(task: Task, user_id: str) -> list[str]:
    """The ``completed_by`` set after ``user_id`` toggles their own completion.

    Applying it twice gives back the original set. A user who is not an
    assignee can be toggled too; callers only ever pass the acting user.
    """
    return toggle_member(task.completed_by, user_id)


def is_globally_done(task: Task) -> bool:
    if not task.assigned_to:
        return False
    return set(task.assigned_to) <= set(task.completed_by)


def is_done_for(task: Task, user_id: str) -> bool:
    return user_id in task.completed_by


def is_resolved_for(task: Task, viewer_id: str) -> bool:
    """Done from the viewer's point of view.

    Assignees look at their own completion; everyone else (the creator,
    an admin) looks at the whole group.
    """
    if viewer_id in task.assigned_to:
        return is_done_for(task, viewer_id)
    return is_globally_done(task)


def pending_assignees(task: Task) -> list[str]:
    """Assignees who have not completed, in assignment order."""
    done = set(task.completed_by)
    return [uid for uid in task.assigned_to if uid not in done]
