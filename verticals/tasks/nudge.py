"""Nudge ("shock") planning.

A nudge targets every assignee who has not completed the task. Targets are
added to ``shocked_users``; existing entries are never removed by a nudge.
A user leaves the set only by clearing their own entry, which happens when
they mark the task's comments as seen.
"""

from dataclasses import dataclass, field

from verticals.tasks.completion import pending_assignees
from verticals.tasks.models.schemas import Task, unique


@dataclass(frozen=True)
class NudgePlan:
    pending: list[str] = field(default_factory=list)
    shocked_users: list[str] = field(default_factory=list)

    @property
    def is_noop(self) -> bool:
        return not self.pending


def plan_nudge(task: Task) -> NudgePlan:
    pending = pending_assignees(task)
    if not pending:
        return NudgePlan(pending=[], shocked_users=list(task.shocked_users))
    return NudgePlan(pending=pending, shocked_users=union_shocked(task.shocked_users, pending))


def union_shocked(shocked: list[str], pending: list[str]) -> list[str]:
    return unique([*shocked, *pending])


def clear_shock(shocked: list[str], user_id: str) -> list[str]:
    """Remove ``user_id`` only. Nobody clears another user's shock."""
    return [uid for uid in shocked if uid != user_id]


def restrict_to_assignees(shocked: list[str], assigned_to: list[str]) -> list[str]:
    """Drop shocked users who are no longer assigned."""
    assigned = set(assigned_to)
    return [uid for uid in shocked if uid in assigned]
