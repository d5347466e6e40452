"""Plain-data conversion of tasks for storage and transfer."""

from contextlib import suppress
from datetime import datetime
from typing import Any

from taskflow.models import Task, TaskStatus, TimeEntry, TimeTracking


def task_to_dict(task: Task) -> dict[str, Any]:
    """Convert a task to JSON/YAML-safe data, dates as ISO-8601 strings."""
    tracking = task.time_tracking
    data: dict[str, Any] = {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "status": task.status.value,
        "createdAt": task.created_at.isoformat(),
        "dueDate": task.due_date.isoformat() if task.due_date else None,
        "parentId": task.parent_id,
        "childIds": list(task.child_ids),
        "depth": task.depth,
        "timeTracking": {
            "totalTimeSpent": tracking.total_time_spent,
            "isActive": tracking.is_active,
            "lastStarted": tracking.last_started,
            "timeEntries": [_entry_to_dict(entry) for entry in tracking.time_entries],
        },
    }
    return data


def task_from_dict(data: dict[str, Any]) -> Task:
    """Rebuild a task from stored data; tolerates missing optional fields."""
    task_id = data.get("id")
    if task_id is None or str(task_id) == "":
        raise ValueError("Task data has no id")

    parent_id = data.get("parentId")
    return Task(
        id=str(task_id),
        title=str(data.get("title") or ""),
        description=str(data.get("description") or ""),
        status=TaskStatus.parse(data.get("status")),
        created_at=parse_datetime(data.get("createdAt")) or datetime.now(),
        due_date=parse_datetime(data.get("dueDate")),
        parent_id=str(parent_id) if parent_id not in (None, "") else None,
        child_ids=_id_tuple(data.get("childIds")),
        depth=_to_int(data.get("depth")) or 0,
        time_tracking=tracking_from_dict(data.get("timeTracking") or {}),
    )


def tracking_from_dict(data: Any) -> TimeTracking:
    """Rebuild time tracking; anything that is not a mapping counts as empty."""
    if not isinstance(data, dict):
        data = {}
    raw_entries = data.get("timeEntries")
    if not isinstance(raw_entries, list):
        raw_entries = []
    entries = tuple(
        entry
        for entry in (_entry_from_dict(raw) for raw in raw_entries)
        if entry is not None
    )
    is_active = bool(data.get("isActive"))
    last_started = _to_int(data.get("lastStarted")) if is_active else None
    if is_active and last_started is None:
        # An active flag without a start time cannot be credited
        is_active = False
    return TimeTracking(
        total_time_spent=max(_to_int(data.get("totalTimeSpent")) or 0, 0),
        is_active=is_active,
        last_started=last_started,
        time_entries=entries,
    )


def parse_datetime(value: Any) -> datetime | None:
    """Parse an ISO-8601 string (or pass through a datetime)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    with suppress(ValueError, TypeError):
        return datetime.fromisoformat(str(value))
    return None


def _entry_to_dict(entry: TimeEntry) -> dict[str, Any]:
    return {
        "startTime": entry.start_time,
        "endTime": entry.end_time,
        "duration": entry.duration,
    }


def _entry_from_dict(data: Any) -> TimeEntry | None:
    if not isinstance(data, dict):
        return None
    start = _to_int(data.get("startTime"))
    if start is None:
        return None
    return TimeEntry(
        start_time=start,
        end_time=_to_int(data.get("endTime")),
        duration=_to_int(data.get("duration")),
    )


def _id_tuple(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list | tuple):
        return ()
    return tuple(str(v) for v in value)


def _to_int(value: Any) -> int | None:
    """Coerce numeric values to int; reject bools and garbage."""
    if value is None or isinstance(value, bool):
        return None
    with suppress(ValueError, TypeError):
        return int(float(value))
    return None
