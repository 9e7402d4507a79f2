"""Test per-user and group completion."""
from verticals.tasks.completion import (
    is_done_for,
    is_globally_done,
    is_resolved_for,
    pending_assignees,
    toggle_completion,
)
from tests.factories import make_task


def test_two_assignees_complete_in_turn():
    task = make_task(assigned_to=["u1", "u2"])

    task = task.model_copy(update={"completed_by": toggle_completion(task, "u1")})
    assert task.completed_by == ["u1"]
    assert not is_globally_done(task)

    task = task.model_copy(update={"completed_by": toggle_completion(task, "u2")})
    assert task.completed_by == ["u1", "u2"]
    assert is_globally_done(task)


def test_toggle_twice_restores_original():
    task = make_task(assigned_to=["u1", "u2"], completed_by=["u2"])
    once = task.model_copy(update={"completed_by": toggle_completion(task, "u1")})
    twice = toggle_completion(once, "u1")
    assert twice == ["u2"]


def test_unassigned_task_is_never_globally_done():
    task = make_task(assigned_to=[], completed_by=["someone"])
    assert not is_globally_done(task)


def test_toggle_non_assignee_is_allowed():
    task = make_task(assigned_to=["u1"])
    assert toggle_completion(task, "outsider") == ["outsider"]


def test_done_for_user():
    task = make_task(assigned_to=["u1", "u2"], completed_by=["u1"])
    assert is_done_for(task, "u1")
    assert not is_done_for(task, "u2")


def test_resolved_for_assignee_uses_own_completion():
    task = make_task(assigned_to=["u1", "u2"], completed_by=["u1"])
    assert is_resolved_for(task, "u1")
    assert not is_resolved_for(task, "u2")


def test_resolved_for_creator_uses_group_completion():
    task = make_task(assigned_to=["u1", "u2"], completed_by=["u1"])
    assert not is_resolved_for(task, "creator")
    done = task.model_copy(update={"completed_by": ["u1", "u2"]})
    assert is_resolved_for(done, "creator")


def test_pending_assignees_keep_assignment_order():
    task = make_task(assigned_to=["u3", "u1", "u2"], completed_by=["u1"])
    assert pending_assignees(task) == ["u3", "u2"]


def test_duplicate_members_are_collapsed():
    task = make_task(assigned_to=["u1", "u1", "u2"], completed_by=["u1", "u1"])
    assert task.assigned_to == ["u1", "u2"]
    assert task.completed_by == ["u1"]
