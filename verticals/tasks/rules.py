"""Task permission rules: pure functions.

Rules are stateless functions: (task, user) -> RuleResult. No database, no
side effects. The service turns a failed result into the matching error.
"""

from dataclasses import dataclass, field
from typing import Any

from verticals.tasks.errors import AuthorizationError, ValidationError
from verticals.tasks.models.schemas import Task, Viewer


# ---------------------------------------------------------------------------
# Result type
# ---------------------------------------------------------------------------

@dataclass
class RuleResult:
    """Outcome of a single rule evaluation."""

    passed: bool
    rule_name: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def enforce(self, error: type[Exception] = AuthorizationError) -> None:
        if not self.passed:
            raise error(self.message)


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

def can_view(task: Task, viewer: Viewer) -> RuleResult:
    """Admins see everything; others see what they created or are assigned to."""
    passed = (
        viewer.is_admin
        or task.created_by == viewer.user_id
        or viewer.user_id in task.assigned_to
    )
    return RuleResult(
        passed=passed,
        rule_name="task_visibility",
        message="Visible" if passed else f"Task {task.id} is not visible to {viewer.user_id}",
        details={"is_admin": viewer.is_admin},
    )


def can_edit(task: Task, user_id: str) -> RuleResult:
    passed = task.created_by == user_id
    return RuleResult(
        passed=passed,
        rule_name="edit_metadata",
        message="Creator" if passed else "Only the creator can edit this task",
    )


def can_delete(task: Task, user_id: str) -> RuleResult:
    passed = task.created_by == user_id
    return RuleResult(
        passed=passed,
        rule_name="delete_task",
        message="Creator" if passed else "Only the creator can delete this task",
    )


def can_toggle_priority(task: Task, user_id: str) -> RuleResult:
    is_creator = task.created_by == user_id
    is_assignee = user_id in task.assigned_to
    passed = is_creator or is_assignee
    return RuleResult(
        passed=passed,
        rule_name="toggle_priority",
        message=(
            "Creator or assignee"
            if passed
            else "Only the creator or an assignee can change the priority flag"
        ),
        details={"is_creator": is_creator, "is_assignee": is_assignee},
    )


def check_title(title: str | None) -> RuleResult:
    passed = bool(title and title.strip())
    return RuleResult(
        passed=passed,
        rule_name="title_required",
        message="Title present" if passed else "Title cannot be empty",
    )


def require_title(title: str | None) -> str:
    check_title(title).enforce(ValidationError)
    return title.strip()
