"""Reconciliation of local and remote task snapshots."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum

from taskflow.hierarchy import index_tasks, relink
from taskflow.models import Task, TaskStatus, TimeTracking, is_server_id
from taskflow.persistence.local_store import LocalPersistence
from taskflow.remote import RemoteResult, RemoteTaskService
from taskflow.timer import resume_session

logger = logging.getLogger(__name__)

DEFAULT_EXPANDED_NODES = frozenset({"1", "2"})


def default_tasks() -> list[Task]:
    """Sample tasks a fresh local cache starts with."""
    return [
        Task(
            id="1",
            title="Frontend Development",
            description="Complete the user interface components",
            status=TaskStatus.IN_PROGRESS,
            created_at=datetime(2024, 1, 15),
            due_date=datetime(2024, 2, 15),
            child_ids=("2", "3"),
            depth=0,
        ),
        Task(
            id="2",
            title="Design System",
            description="Create reusable UI components",
            status=TaskStatus.DONE,
            created_at=datetime(2024, 1, 16),
            parent_id="1",
            child_ids=("4",),
            depth=1,
        ),
        Task(
            id="3",
            title="API Integration",
            description="Connect frontend with backend services",
            status=TaskStatus.OPEN,
            created_at=datetime(2024, 1, 17),
            parent_id="1",
            depth=1,
        ),
        Task(
            id="4",
            title="Button Components",
            description="Create various button styles and states",
            status=TaskStatus.DONE,
            created_at=datetime(2024, 1, 18),
            parent_id="2",
            depth=2,
        ),
    ]


class SyncSource(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"


@dataclass(frozen=True)
class SyncOutcome:
    """Result of a reconciliation pass."""

    tasks: list[Task]
    source: SyncSource
    error: str | None = None


def merge_time_tracking(remote: TimeTracking, local: TimeTracking) -> TimeTracking:
    """Merge the time tracking of one task seen on both sides.

    The larger total wins and brings its session state along; on a tie the
    active flags are OR-ed so a running session is never dropped. Local
    entries are preferred over remote ones when both exist.
    """
    total = max(remote.total_time_spent, local.total_time_spent)

    if local.total_time_spent > remote.total_time_spent:
        is_active, last_started = local.is_active, local.last_started
    elif remote.total_time_spent > local.total_time_spent:
        is_active, last_started = remote.is_active, remote.last_started
    else:
        is_active = local.is_active or remote.is_active
        if local.is_active:
            last_started = local.last_started
        elif remote.is_active:
            last_started = remote.last_started
        else:
            last_started = None

    entries = local.time_entries or remote.time_entries

    merged = TimeTracking(
        total_time_spent=total,
        is_active=False,
        last_started=None,
        time_entries=entries,
    )
    if is_active and last_started is not None:
        return resume_session(merged, last_started)
    if entries and entries[-1].is_open:
        # The winning side is not running; an open entry here was never credited
        merged = replace(merged, time_entries=entries[:-1])
    return merged


def merge_snapshots(local: list[Task], remote: list[Task]) -> list[Task]:
    """Merge a remote snapshot into the local one.

    Remote is authoritative for every field except time tracking. Tasks
    that exist only locally and never received a server id were created
    offline and are kept as they are.

    Args:
        local: Local working set
        remote: Snapshot fetched from the server

    Returns:
        Merged tasks with child links and depths recomputed
    """
    local_by_id = index_tasks(local)
    merged: list[Task] = []

    for remote_task in remote:
        local_task = local_by_id.get(remote_task.id)
        if local_task is None:
            merged.append(remote_task)
            continue
        merged.append(
            remote_task.with_changes(
                time_tracking=merge_time_tracking(
                    remote_task.time_tracking, local_task.time_tracking
                )
            )
        )

    remote_ids = {task.id for task in remote}
    unsynced = [
        task for task in local if task.id not in remote_ids and not is_server_id(task.id)
    ]
    if unsynced:
        logger.info(f"[Sync] Keeping {len(unsynced)} task(s) created offline")
    merged.extend(unsynced)

    return relink(merged)


def apply_running_markers(tasks: list[Task], markers: dict[str, int]) -> list[Task]:
    """Restore sessions recorded as running for tasks that are In Progress."""
    if not markers:
        return tasks
    restored: list[Task] = []
    for task in tasks:
        started_at = markers.get(task.id)
        if started_at is not None and task.status == TaskStatus.IN_PROGRESS:
            logger.debug(f"[Sync] Restoring running timer for {task.id} from {started_at}")
            task = task.with_changes(
                time_tracking=resume_session(task.time_tracking, started_at)
            )
        restored.append(task)
    return restored


class SyncReconciler:
    """Derives the working task set on mount and on auth transitions."""

    def __init__(
        self,
        remote: RemoteTaskService,
        persistence: LocalPersistence,
        seed_default_tasks: bool = True,
    ) -> None:
        """Initialize with the remote service and the local cache."""
        self._remote = remote
        self._persistence = persistence
        self._seed_default_tasks = seed_default_tasks

    def load_local(self) -> SyncOutcome:
        """Task set from the local cache, or the defaults for a fresh cache."""
        tasks = self._persistence.load_tasks()
        if tasks is None:
            tasks = default_tasks() if self._seed_default_tasks else []
            logger.info(f"[Sync] No local cache; starting with {len(tasks)} default task(s)")
        else:
            logger.info(f"[Sync] Loaded {len(tasks)} task(s) from local cache")
        return SyncOutcome(tasks=relink(tasks), source=SyncSource.LOCAL)

    def load_expanded_nodes(self) -> set[str]:
        stored = self._persistence.load_expanded_nodes()
        return set(DEFAULT_EXPANDED_NODES) if stored is None else stored

    async def reconcile(self, current: Callable[[], list[Task]]) -> SyncOutcome:
        """Merge the remote snapshot into the local one.

        The local snapshot is read through current() only after the fetch
        completes, so local edits made while it was in flight are merged
        too. Falls back to local unchanged when the fetch fails.

        Args:
            current: Returns the local snapshot to merge into

        Returns:
            SyncOutcome with source REMOTE, or LOCAL plus an error
        """
        try:
            result = await self._remote.get_tasks()
        except Exception as e:
            result = RemoteResult(error=str(e) or type(e).__name__)

        local = current()
        if result.error is not None or result.data is None:
            error = result.error or "Invalid response from server"
            logger.warning(f"[Sync] Remote fetch failed, using local snapshot: {error}")
            return SyncOutcome(
                tasks=local,
                source=SyncSource.LOCAL,
                error=f"Could not load tasks from server: {error}",
            )

        merged = merge_snapshots(local, result.data)
        merged = apply_running_markers(merged, self._persistence.load_running_timers())
        logger.info(
            f"[Sync] Reconciled {len(local)} local and {len(result.data)} remote task(s) "
            f"into {len(merged)}"
        )
        return SyncOutcome(tasks=merged, source=SyncSource.REMOTE)
