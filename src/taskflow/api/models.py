"""API models for Taskflow."""

from datetime import datetime

from pydantic import BaseModel, Field

from taskflow.models import Task, TaskNode, TaskStatus
from taskflow.stats import StatsPeriod, TimeStats


class TimeEntryResponse(BaseModel):
    """One closed or open timer interval."""

    start_time: int
    end_time: int | None
    duration: int | None


class TimeTrackingResponse(BaseModel):
    """Committed time-tracking state of a task."""

    total_time_spent: int
    is_active: bool
    last_started: int | None
    time_entries: list[TimeEntryResponse]


class TaskResponse(BaseModel):
    """API response model for tasks."""

    id: str
    title: str
    description: str
    status: TaskStatus
    created_at: datetime
    due_date: datetime | None
    parent_id: str | None
    child_ids: list[str]
    depth: int
    time_tracking: TimeTrackingResponse


class TaskNodeResponse(TaskResponse):
    """Task with its materialized children."""

    children: list["TaskNodeResponse"] = Field(default_factory=list)


class CreateTaskRequest(BaseModel):
    """Request model for creating a task."""

    title: str
    description: str = ""
    status: TaskStatus = TaskStatus.OPEN
    parent_id: str | None = None
    due_date: datetime | None = None


class UpdateTaskRequest(BaseModel):
    """Request model for editing a task; only fields that are sent change."""

    title: str | None = None
    description: str | None = None
    status: TaskStatus | None = None
    parent_id: str | None = None
    due_date: datetime | None = None


class MoveTaskRequest(BaseModel):
    """Request model for a status change."""

    status: TaskStatus


class ElapsedResponse(BaseModel):
    task_id: str
    elapsed_ms: int
    is_active: bool


class TaskTimeStatResponse(BaseModel):
    task_id: str
    title: str
    time_spent: int


class TimeStatsResponse(BaseModel):
    period: StatsPeriod
    total_time: int
    task_stats: list[TaskTimeStatResponse]


class ImportRequest(BaseModel):
    """Request model for importing an exported YAML document."""

    content: str


class ImportResponse(BaseModel):
    imported_ids: list[str]


def task_to_response(task: Task) -> TaskResponse:
    """Convert Task to TaskResponse."""
    return TaskResponse(**_task_fields(task))


def node_to_response(node: TaskNode) -> TaskNodeResponse:
    """Convert TaskNode (recursively) to TaskNodeResponse."""
    return TaskNodeResponse(
        **_task_fields(node.task),
        children=[node_to_response(child) for child in node.children],
    )


def stats_to_response(period: StatsPeriod, stats: TimeStats) -> TimeStatsResponse:
    return TimeStatsResponse(
        period=period,
        total_time=stats.total_time,
        task_stats=[
            TaskTimeStatResponse(task_id=s.task_id, title=s.title, time_spent=s.time_spent)
            for s in stats.task_stats
        ],
    )


def _task_fields(task: Task) -> dict[str, object]:
    tracking = task.time_tracking
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "status": task.status,
        "created_at": task.created_at,
        "due_date": task.due_date,
        "parent_id": task.parent_id,
        "child_ids": list(task.child_ids),
        "depth": task.depth,
        "time_tracking": TimeTrackingResponse(
            total_time_spent=tracking.total_time_spent,
            is_active=tracking.is_active,
            last_started=tracking.last_started,
            time_entries=[
                TimeEntryResponse(
                    start_time=entry.start_time,
                    end_time=entry.end_time,
                    duration=entry.duration,
                )
                for entry in tracking.time_entries
            ],
        ),
    }
