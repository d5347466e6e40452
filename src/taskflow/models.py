"""Domain models for the task engine."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum


class TaskStatus(str, Enum):
    """Task lifecycle status."""

    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    DONE = "Done"

    @classmethod
    def parse(cls, raw: "str | TaskStatus | None") -> "TaskStatus":
        """Parse a stored status, defaulting to Open for unknown values."""
        if isinstance(raw, TaskStatus):
            return raw
        if not raw:
            return cls.OPEN
        normalized = str(raw).strip().lower().replace("_", " ").replace("-", " ")
        for status in cls:
            if status.value.lower() == normalized:
                return status
        if normalized == "inprogress":
            return cls.IN_PROGRESS
        return cls.OPEN


@dataclass(frozen=True)
class TimeEntry:
    """One contiguous interval during which a task's timer was running."""

    start_time: int  # epoch ms
    end_time: int | None = None  # absent while open
    duration: int | None = None  # ms, set when closed

    @property
    def is_open(self) -> bool:
        return self.end_time is None


@dataclass(frozen=True)
class TimeTracking:
    """Time-tracking state embedded in a task."""

    total_time_spent: int = 0  # ms
    is_active: bool = False
    last_started: int | None = None  # epoch ms, set iff a session is open
    time_entries: tuple[TimeEntry, ...] = ()


@dataclass(frozen=True)
class Task:
    """A unit of work with status, optional parent, and time tracking."""

    id: str
    title: str
    description: str = ""
    status: TaskStatus = TaskStatus.OPEN
    created_at: datetime = field(default_factory=datetime.now)
    due_date: datetime | None = None
    parent_id: str | None = None
    child_ids: tuple[str, ...] = ()
    depth: int = 0
    time_tracking: TimeTracking = field(default_factory=TimeTracking)

    def with_changes(self, **changes: object) -> "Task":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)  # type: ignore[arg-type]


@dataclass
class TaskNode:
    """A task with its materialized children; rebuilt on demand, never stored."""

    task: Task
    children: list["TaskNode"] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.task.id


@dataclass(frozen=True)
class TaskFilter:
    """Status and free-text filter for list and tree views."""

    status: TaskStatus | None = None
    search_term: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.status is None and not (self.search_term or "").strip()

    def matches(self, task: Task) -> bool:
        """Check if a task satisfies the filter."""
        if self.status is not None and task.status != self.status:
            return False
        term = (self.search_term or "").strip().lower()
        if term:
            return term in task.title.lower() or term in task.description.lower()
        return True


def is_server_id(task_id: str) -> bool:
    """Server-issued ids are numeric; locally generated ids are not."""
    return task_id.isdigit()
