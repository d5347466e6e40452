"""YAML export and import of tasks with their time tracking."""

import logging
from datetime import datetime, timezone
from typing import Any

import yaml

from taskflow.config import MAX_SESSION_MS
from taskflow.errors import ValidationError
from taskflow.models import Task, TimeEntry, TimeTracking
from taskflow.serialization import task_from_dict, task_to_dict
from taskflow.timer import close_for_export

logger = logging.getLogger(__name__)

EXPORT_VERSION = 1


def export_tasks(tasks: list[Task], now: int, max_session_ms: int = MAX_SESSION_MS) -> str:
    """Serialize tasks to a YAML document.

    A running session is folded into the exported copy as if it had been
    paused at now; the live task is not touched.
    """
    exported = [
        task_to_dict(
            task.with_changes(
                time_tracking=close_for_export(task.time_tracking, now, max_session_ms)
            )
        )
        for task in tasks
    ]
    document = {
        "version": EXPORT_VERSION,
        "exportedAt": datetime.fromtimestamp(now / 1000, tz=timezone.utc).isoformat(),
        "tasks": exported,
    }
    return yaml.safe_dump(document, sort_keys=False, allow_unicode=True)


def parse_import(text: str) -> list[Task]:
    """Parse an exported YAML document into tasks with their original ids.

    Imported sessions are never running: open entries are closed using
    their recorded duration, or zero.
    """
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ValidationError(f"Invalid YAML in import: {e}") from e

    if isinstance(document, dict):
        rows = document.get("tasks")
    else:
        rows = document
    if not isinstance(rows, list):
        raise ValidationError("Import must contain a list of tasks")

    tasks: list[Task] = []
    for index, row in enumerate(rows):
        if not isinstance(row, dict):
            logger.warning(f"[Transfer] Skipping row {index}: not a mapping")
            continue
        data: dict[str, Any] = dict(row)
        data.setdefault("id", f"import-{index}")
        if not data.get("title"):
            data["title"] = "Untitled Task"
        try:
            task = task_from_dict(data)
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(f"[Transfer] Skipping row {index}: {e}")
            continue
        tasks.append(task.with_changes(time_tracking=_stopped(task.time_tracking)))
    return tasks


def _stopped(tracking: TimeTracking) -> TimeTracking:
    entries = []
    for entry in tracking.time_entries:
        if entry.is_open:
            duration = entry.duration or 0
            entry = TimeEntry(
                start_time=entry.start_time,
                end_time=entry.start_time + duration,
                duration=duration,
            )
        entries.append(entry)
    return TimeTracking(
        total_time_spent=tracking.total_time_spent,
        is_active=False,
        last_started=None,
        time_entries=tuple(entries),
    )
