"""Test board building: visibility, filters, sections and briefing."""
from datetime import date, datetime, timezone

import pytest

from verticals.tasks.config import TaskConfig
from verticals.tasks.models.schemas import TaskFilters, Viewer
from verticals.tasks.orchestrator import TaskListOrchestrator, matches_filters
from tests.factories import T0, TODAY, make_comment, make_task


@pytest.fixture
def orchestrator():
    return TaskListOrchestrator(TaskConfig.default())


@pytest.fixture
def tasks():
    return [
        make_task(title="Mine to do", created_by="boss", assigned_to=["u1"], due_date=date(2024, 5, 3)),
        make_task(title="I assigned", created_by="u1", assigned_to=["u2"], due_date=date(2024, 4, 20)),
        make_task(title="Someone else", created_by="boss", assigned_to=["u2"]),
        make_task(
            title="Mine finished",
            created_by="boss",
            assigned_to=["u1", "u2"],
            completed_by=["u1"],
            due_date=date(2024, 4, 1),
        ),
    ]


def test_non_admin_sees_only_own_tasks(orchestrator, tasks):
    board = orchestrator.build(tasks, Viewer(user_id="u1"), TaskFilters(), TODAY, {})
    assert [v.task.title for v in board.assigned_to_me] == ["Mine to do", "Mine finished"]
    assert [v.task.title for v in board.created_by_me] == ["I assigned"]
    assert board.all_tasks is None


def test_admin_gets_all_tasks_view(orchestrator, tasks):
    board = orchestrator.build(tasks, Viewer(user_id="root", is_admin=True), TaskFilters(), TODAY, {})
    assert board.all_tasks is not None
    assert len(board.all_tasks) == 4
    assert board.assigned_to_me == []


def test_pending_filter_uses_viewer_resolution(orchestrator, tasks):
    board = orchestrator.build(tasks, Viewer(user_id="u1"), TaskFilters(type="pending"), TODAY, {})
    assert [v.task.title for v in board.assigned_to_me] == ["Mine to do"]

    board = orchestrator.build(tasks, Viewer(user_id="u1"), TaskFilters(type="completed"), TODAY, {})
    assert [v.task.title for v in board.assigned_to_me] == ["Mine finished"]


def test_filters_are_and_combined():
    task = make_task(title="Quarterly Report", created_by="boss", assigned_to=["u1"], due_date=date(2024, 5, 9))
    assert matches_filters(task, "u1", TaskFilters(assignee="u1", assigner="boss", title="report"))
    assert not matches_filters(task, "u1", TaskFilters(assignee="u1", assigner="someone"))
    assert matches_filters(task, "u1", TaskFilters(month="2024-05"))
    assert not matches_filters(task, "u1", TaskFilters(month="2024-04"))


def test_month_filter_falls_back_to_created_at():
    task = make_task(created_at=datetime(2024, 3, 15, tzinfo=timezone.utc))
    assert matches_filters(task, "creator", TaskFilters(month="2024-03"))


def test_view_model_flags(orchestrator):
    task = make_task(
        assigned_to=["u1", "u2"],
        completed_by=["u1"],
        shocked_users=["u2"],
        tags=["ops", "__priority__"],
        comments=[make_comment("u1", T0)],
    )
    view = orchestrator.view(task, "u2", TODAY, None)
    assert view.unread_count == 1
    assert view.is_shocked_for_viewer
    assert not view.is_done_for_viewer
    assert not view.is_globally_done
    assert view.is_priority
    assert [t.label for t in view.display_tags] == ["ops"]
    assert view.pending_assignees == ["u2"]


def test_unread_task_leads_personal_view(orchestrator):
    quiet = make_task(title="quiet", assigned_to=["u1"], due_date=date(2024, 5, 2))
    chatty = make_task(
        title="chatty",
        assigned_to=["u1"],
        due_date=date(2024, 6, 2),
        comments=[make_comment("u2", T0)],
    )
    board = orchestrator.build([quiet, chatty], Viewer(user_id="u1"), TaskFilters(), TODAY, {})
    assert [v.task.title for v in board.assigned_to_me] == ["chatty", "quiet"]

    seen = {chatty.id: T0}
    board = orchestrator.build([quiet, chatty], Viewer(user_id="u1"), TaskFilters(), TODAY, seen)
    assert [v.task.title for v in board.assigned_to_me] == ["quiet", "chatty"]


def test_briefing_counts(orchestrator, tasks):
    tasks.append(
        make_task(title="Due today", created_by="boss", assigned_to=["u1"], due_date=TODAY, shocked_users=["u1"])
    )
    board = orchestrator.build(tasks, Viewer(user_id="u1"), TaskFilters(), TODAY, {})
    assert board.briefing.pending == 2
    assert board.briefing.due_today == 1
    assert board.briefing.overdue == 0
    assert board.briefing.shocked == 1
