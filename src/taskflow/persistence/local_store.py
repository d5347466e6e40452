"""Local cache of tasks, expanded tree nodes, and running timers."""

import json
import logging
from typing import Any

from taskflow.errors import PersistenceError
from taskflow.models import Task
from taskflow.persistence.kv_store import KeyValueStore
from taskflow.serialization import task_from_dict, task_to_dict

logger = logging.getLogger(__name__)

TASKS_KEY = "taskflow_tasks"
SESSION_TASKS_KEY = "taskflow_session_tasks"
EXPANDED_NODES_KEY = "taskflow_expanded_nodes"
RUNNING_TIMERS_KEY = "taskflow_running_timers"


class LocalPersistence:
    """Fire-and-forget wrapper over a key-value medium.

    Writes never raise: a failure is logged and remembered in
    last_failure, and in-memory state stays authoritative. Reads return
    None (or an empty value) when nothing usable is stored.
    """

    def __init__(self, kv: KeyValueStore) -> None:
        """Initialize with the storage medium."""
        self._kv = kv
        self.last_failure: PersistenceError | None = None

    # ---- tasks ----

    def load_tasks(self) -> list[Task] | None:
        """Offline task cache, or None if absent or unreadable."""
        return self._load_task_list(TASKS_KEY)

    def save_tasks(self, tasks: list[Task]) -> bool:
        return self._write_json(TASKS_KEY, [task_to_dict(task) for task in tasks])

    # ---- signed-in session snapshot ----

    def load_session_tasks(self) -> list[Task] | None:
        """Working set of the last signed-in session, kept apart from the offline cache."""
        return self._load_task_list(SESSION_TASKS_KEY)

    def save_session_tasks(self, tasks: list[Task]) -> bool:
        return self._write_json(SESSION_TASKS_KEY, [task_to_dict(task) for task in tasks])

    def clear_session_tasks(self) -> bool:
        return self._remove(SESSION_TASKS_KEY)

    def _load_task_list(self, key: str) -> list[Task] | None:
        raw = self._read_json(key)
        if raw is None:
            return None
        if not isinstance(raw, list):
            logger.error("[LocalPersistence] Stored task list is not a list; ignoring")
            return None
        try:
            return [task_from_dict(item) for item in raw]
        except (ValueError, TypeError, AttributeError) as e:
            logger.error(f"[LocalPersistence] Failed to parse stored tasks: {e}")
            return None

    # ---- expanded tree nodes ----

    def load_expanded_nodes(self) -> set[str] | None:
        raw = self._read_json(EXPANDED_NODES_KEY)
        if not isinstance(raw, list):
            return None
        return {str(node_id) for node_id in raw}

    def save_expanded_nodes(self, node_ids: set[str]) -> bool:
        return self._write_json(EXPANDED_NODES_KEY, sorted(node_ids))

    # ---- running timers ----

    def load_running_timers(self) -> dict[str, int]:
        """Map of task id -> epoch ms the running session started at."""
        raw = self._read_json(RUNNING_TIMERS_KEY)
        if not isinstance(raw, dict):
            return {}
        markers: dict[str, int] = {}
        for task_id, started_at in raw.items():
            if isinstance(started_at, int | float) and not isinstance(started_at, bool):
                markers[str(task_id)] = int(started_at)
        return markers

    def mark_running(self, task_id: str, started_at: int) -> bool:
        markers = self.load_running_timers()
        markers[task_id] = started_at
        return self._write_json(RUNNING_TIMERS_KEY, markers)

    def clear_running(self, *task_ids: str) -> bool:
        markers = self.load_running_timers()
        if not any(task_id in markers for task_id in task_ids):
            return True
        for task_id in task_ids:
            markers.pop(task_id, None)
        return self._write_json(RUNNING_TIMERS_KEY, markers)

    def replace_running(self, markers: dict[str, int]) -> bool:
        return self._write_json(RUNNING_TIMERS_KEY, markers)

    def rename_running(self, old_id: str, new_id: str) -> bool:
        markers = self.load_running_timers()
        if old_id not in markers:
            return True
        markers[new_id] = markers.pop(old_id)
        return self._write_json(RUNNING_TIMERS_KEY, markers)

    # ---- low-level helpers ----

    def _read_json(self, key: str) -> Any:
        try:
            raw = self._kv.get(key)
        except Exception as e:
            self._record(PersistenceError(f"Failed to read {key}: {e}"))
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"[LocalPersistence] Corrupt value under {key}: {e}")
            return None

    def _write_json(self, key: str, payload: Any) -> bool:
        try:
            self._kv.set(key, json.dumps(payload, ensure_ascii=False))
        except Exception as e:
            self._record(PersistenceError(f"Failed to write {key}: {e}"))
            return False
        return True

    def _remove(self, key: str) -> bool:
        try:
            self._kv.remove(key)
        except Exception as e:
            self._record(PersistenceError(f"Failed to remove {key}: {e}"))
            return False
        return True

    def _record(self, error: PersistenceError) -> None:
        self.last_failure = error
        logger.error(f"[LocalPersistence] {error}")
