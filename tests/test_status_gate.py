"""Tests for the completion gate."""

from taskflow.hierarchy import index_tasks
from taskflow.models import Task, TaskStatus
from taskflow.status_gate import can_complete, check_transition, incomplete_children


def _family(*child_statuses: TaskStatus) -> dict[str, Task]:
    children = [
        Task(id=f"c{i}", title=f"Child {i}", parent_id="p", status=status)
        for i, status in enumerate(child_statuses)
    ]
    parent = Task(id="p", title="Parent", child_ids=tuple(c.id for c in children))
    return index_tasks([parent, *children])


def test_leaf_can_always_complete() -> None:
    tasks = _family()

    assert can_complete(tasks["p"], tasks) is True


def test_can_complete_when_all_children_done() -> None:
    tasks = _family(TaskStatus.DONE, TaskStatus.DONE)

    assert can_complete(tasks["p"], tasks) is True


def test_cannot_complete_with_open_child() -> None:
    tasks = _family(TaskStatus.DONE, TaskStatus.IN_PROGRESS)

    assert can_complete(tasks["p"], tasks) is False
    assert incomplete_children(tasks["p"], tasks) == ["c1"]


def test_unresolved_child_counts_as_incomplete() -> None:
    """Test that a child id missing from the set blocks completion."""
    parent = Task(id="p", title="Parent", child_ids=("missing",))
    tasks = index_tasks([parent])

    assert can_complete(parent, tasks) is False


def test_check_transition_reports_blocking_children() -> None:
    tasks = _family(TaskStatus.OPEN)

    result = check_transition(tasks["p"], TaskStatus.DONE, tasks)

    assert result.ok is False
    assert result.error == "Cannot complete task: subtasks incomplete"
    assert result.incomplete_child_ids == ["c0"]


def test_check_transition_allows_non_done_targets() -> None:
    tasks = _family(TaskStatus.OPEN)

    assert check_transition(tasks["p"], TaskStatus.IN_PROGRESS, tasks).ok is True
    assert check_transition(tasks["p"], TaskStatus.OPEN, tasks).ok is True
