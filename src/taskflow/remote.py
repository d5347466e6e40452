"""Contract of the remote task/time service."""

import logging
from dataclasses import dataclass
from typing import Any, Generic, Protocol, TypeVar

from taskflow.models import Task

logger = logging.getLogger(__name__)

T = TypeVar("T")

NOT_AUTHENTICATED = "Not authenticated. Please log in."


@dataclass(frozen=True)
class RemoteResult(Generic[T]):
    """Either data or an error message, never an exception."""

    data: T | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class TaskInput:
    """Fields sent when creating a task remotely."""

    title: str
    description: str
    status: str
    parent_id: str | None = None
    due_date: str | None = None  # YYYY-MM-DD


class RemoteTaskService(Protocol):
    """Protocol for the authoritative remote store.

    Implementations own transport, auth tokens and timeouts. Remote tasks
    carry no time-tracking detail and no child_ids; the engine derives
    those locally.
    """

    def is_authenticated(self) -> bool:
        """Whether a remote session currently exists."""
        ...

    async def get_tasks(self) -> RemoteResult[list[Task]]:
        """Fetch all tasks of the signed-in user."""
        ...

    async def create_task(self, task: TaskInput) -> RemoteResult[Task]:
        """Create a task; the result carries the server-issued id."""
        ...

    async def update_task(self, task_id: str, changes: dict[str, Any]) -> RemoteResult[Task]:
        """Apply a partial update."""
        ...

    async def delete_task(self, task_id: str) -> RemoteResult[None]:
        """Delete one task (no cascade)."""
        ...

    async def record_time_summary(self, task_id: str, duration_ms: int) -> None:
        """Report a closed session; failures are ignored by the caller."""
        ...


class OfflineRemoteTaskService:
    """Remote service used when no backend is configured: never signed in."""

    def is_authenticated(self) -> bool:
        return False

    async def get_tasks(self) -> RemoteResult[list[Task]]:
        return RemoteResult(error=NOT_AUTHENTICATED)

    async def create_task(self, task: TaskInput) -> RemoteResult[Task]:
        return RemoteResult(error=NOT_AUTHENTICATED)

    async def update_task(self, task_id: str, changes: dict[str, Any]) -> RemoteResult[Task]:
        return RemoteResult(error=NOT_AUTHENTICATED)

    async def delete_task(self, task_id: str) -> RemoteResult[None]:
        return RemoteResult(error=NOT_AUTHENTICATED)

    async def record_time_summary(self, task_id: str, duration_ms: int) -> None:
        logger.debug(f"[OfflineRemote] Dropping time summary for {task_id}: {duration_ms}ms")


def to_remote_changes(task: Task, fields: set[str]) -> dict[str, Any]:
    """Partial update payload for the remote-mappable fields among fields.

    Time tracking and derived hierarchy fields (child_ids, depth) are not
    stored remotely and are never sent.
    """
    changes: dict[str, Any] = {}
    if "title" in fields:
        changes["title"] = task.title
    if "description" in fields:
        changes["description"] = task.description
    if "status" in fields:
        changes["status"] = task.status.value
    if "parent_id" in fields:
        changes["parent_id"] = task.parent_id
    if "due_date" in fields:
        changes["due_date"] = task.due_date.date().isoformat() if task.due_date else None
    return changes


def to_task_input(task: Task) -> TaskInput:
    return TaskInput(
        title=task.title,
        description=task.description,
        status=task.status.value,
        parent_id=task.parent_id,
        due_date=task.due_date.date().isoformat() if task.due_date else None,
    )
