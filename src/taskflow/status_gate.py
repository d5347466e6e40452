"""Completion gate for status transitions."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from taskflow.models import Task, TaskStatus

logger = logging.getLogger(__name__)

COMPLETION_BLOCKED = "Cannot complete task: subtasks incomplete"


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of an attempted status transition."""

    ok: bool
    error: str | None = None
    incomplete_child_ids: list[str] = field(default_factory=list)

    @classmethod
    def accepted(cls) -> "TransitionResult":
        return cls(ok=True)

    @classmethod
    def rejected(
        cls, error: str, incomplete_child_ids: list[str] | None = None
    ) -> "TransitionResult":
        return cls(ok=False, error=error, incomplete_child_ids=incomplete_child_ids or [])


def incomplete_children(task: Task, all_tasks: Mapping[str, Task]) -> list[str]:
    """Child ids that block completion.

    A child id that does not resolve counts as incomplete.
    """
    blocking: list[str] = []
    for child_id in task.child_ids:
        child = all_tasks.get(child_id)
        if child is None or child.status != TaskStatus.DONE:
            blocking.append(child_id)
    return blocking


def can_complete(task: Task, all_tasks: Mapping[str, Task]) -> bool:
    """True if the task has no children or every child is Done."""
    return not incomplete_children(task, all_tasks)


def check_transition(
    task: Task, new_status: TaskStatus, all_tasks: Mapping[str, Task]
) -> TransitionResult:
    """Validate moving a task to new_status."""
    if new_status != TaskStatus.DONE:
        return TransitionResult.accepted()

    blocking = incomplete_children(task, all_tasks)
    if blocking:
        logger.info(
            f"[StatusGate] Rejected completion of {task.id}: "
            f"{len(blocking)} subtask(s) not done"
        )
        return TransitionResult.rejected(COMPLETION_BLOCKED, blocking)
    return TransitionResult.accepted()
