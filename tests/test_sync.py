"""Tests for local/remote reconciliation."""

import pytest

from taskflow.models import Task, TaskStatus, TimeEntry, TimeTracking
from taskflow.persistence.kv_store import MemoryKeyValueStore
from taskflow.persistence.local_store import LocalPersistence
from taskflow.sync import (
    DEFAULT_EXPANDED_NODES,
    SyncReconciler,
    SyncSource,
    apply_running_markers,
    merge_snapshots,
    merge_time_tracking,
)

from .fakes import FakeRemoteTaskService


def _tracked(task_id: str, total: int) -> Task:
    return Task(
        id=task_id,
        title=f"Task {task_id}",
        time_tracking=TimeTracking(total_time_spent=total),
    )


def test_merge_snapshots_keeps_higher_total_and_offline_tasks() -> None:
    """Test the canonical reconciliation example."""
    local = [_tracked("1", 1000), _tracked("xk3f9", 300)]
    remote = [_tracked("1", 500), _tracked("2", 0)]

    merged = {task.id: task for task in merge_snapshots(local, remote)}

    assert set(merged) == {"1", "2", "xk3f9"}
    assert merged["1"].time_tracking.total_time_spent == 1000
    assert merged["xk3f9"] == local[1]
    assert merged["2"].time_tracking.total_time_spent == 0


def test_merge_snapshots_remote_wins_non_time_fields() -> None:
    local = [Task(id="1", title="Local title", status=TaskStatus.OPEN)]
    remote = [Task(id="1", title="Remote title", status=TaskStatus.DONE)]

    merged = merge_snapshots(local, remote)

    assert merged[0].title == "Remote title"
    assert merged[0].status == TaskStatus.DONE


def test_merge_snapshots_drops_numeric_local_only_tasks() -> None:
    """Test that a server task deleted remotely does not come back."""
    merged = merge_snapshots([_tracked("7", 100)], [_tracked("1", 0)])

    assert [task.id for task in merged] == ["1"]


def test_merge_snapshots_links_children_from_parent_ids() -> None:
    remote = [Task(id="1", title="Parent"), Task(id="2", title="Child", parent_id="1")]

    merged = {task.id: task for task in merge_snapshots([], remote)}

    assert merged["1"].child_ids == ("2",)
    assert merged["2"].depth == 1


def test_merge_time_tracking_local_running_session_survives() -> None:
    local = TimeTracking(
        total_time_spent=1000,
        is_active=True,
        last_started=5000,
        time_entries=(TimeEntry(start_time=0, end_time=1000, duration=1000), TimeEntry(start_time=5000)),
    )
    remote = TimeTracking(total_time_spent=200)

    merged = merge_time_tracking(remote, local)

    assert merged.total_time_spent == 1000
    assert merged.is_active is True
    assert merged.last_started == 5000
    assert merged.time_entries == local.time_entries


def test_merge_time_tracking_tie_ors_active_flags() -> None:
    local = TimeTracking(total_time_spent=100)
    remote = TimeTracking(total_time_spent=100, is_active=True, last_started=900)

    merged = merge_time_tracking(remote, local)

    assert merged.is_active is True
    assert merged.last_started == 900
    assert merged.time_entries[-1] == TimeEntry(start_time=900)


def test_merge_time_tracking_drops_uncredited_open_entry() -> None:
    """Test that a stale open entry on the losing side is not kept dangling."""
    local = TimeTracking(
        total_time_spent=100,
        time_entries=(TimeEntry(start_time=0, end_time=100, duration=100), TimeEntry(start_time=200)),
    )
    remote = TimeTracking(total_time_spent=5000)

    merged = merge_time_tracking(remote, local)

    assert merged.total_time_spent == 5000
    assert merged.is_active is False
    assert merged.time_entries == (TimeEntry(start_time=0, end_time=100, duration=100),)


def test_apply_running_markers_only_for_in_progress() -> None:
    tasks = [
        Task(id="a", title="A", status=TaskStatus.IN_PROGRESS),
        Task(id="b", title="B", status=TaskStatus.DONE),
    ]

    restored = {task.id: task for task in apply_running_markers(tasks, {"a": 10, "b": 20})}

    assert restored["a"].time_tracking.is_active is True
    assert restored["a"].time_tracking.last_started == 10
    assert restored["b"].time_tracking.is_active is False


def test_load_local_seeds_defaults_for_fresh_cache() -> None:
    reconciler = SyncReconciler(FakeRemoteTaskService(), LocalPersistence(MemoryKeyValueStore()))

    outcome = reconciler.load_local()

    assert outcome.source == SyncSource.LOCAL
    assert [task.id for task in outcome.tasks] == ["1", "2", "3", "4"]
    assert reconciler.load_expanded_nodes() == set(DEFAULT_EXPANDED_NODES)


def test_load_local_without_seeding() -> None:
    reconciler = SyncReconciler(
        FakeRemoteTaskService(), LocalPersistence(MemoryKeyValueStore()), seed_default_tasks=False
    )

    assert reconciler.load_local().tasks == []


def test_load_local_prefers_cache() -> None:
    persistence = LocalPersistence(MemoryKeyValueStore())
    persistence.save_tasks([Task(id="abc", title="Cached")])
    reconciler = SyncReconciler(FakeRemoteTaskService(), persistence)

    assert [task.id for task in reconciler.load_local().tasks] == ["abc"]


@pytest.mark.asyncio
async def test_reconcile_merges_remote_snapshot() -> None:
    remote = FakeRemoteTaskService(authenticated=True, tasks=[_tracked("1", 500), _tracked("2", 0)])
    reconciler = SyncReconciler(remote, LocalPersistence(MemoryKeyValueStore()))
    local = [_tracked("1", 1000), _tracked("xk3f9", 0)]

    outcome = await reconciler.reconcile(lambda: local)

    assert outcome.source == SyncSource.REMOTE
    assert outcome.error is None
    assert len(outcome.tasks) == 3


@pytest.mark.asyncio
async def test_reconcile_falls_back_to_local_on_fetch_failure() -> None:
    remote = FakeRemoteTaskService(authenticated=True)
    remote.get_error = "503 Service Unavailable"
    reconciler = SyncReconciler(remote, LocalPersistence(MemoryKeyValueStore()))
    local = [_tracked("1", 1000)]

    outcome = await reconciler.reconcile(lambda: local)

    assert outcome.source == SyncSource.LOCAL
    assert outcome.tasks == local
    assert outcome.error == "Could not load tasks from server: 503 Service Unavailable"


@pytest.mark.asyncio
async def test_reconcile_restores_running_markers() -> None:
    persistence = LocalPersistence(MemoryKeyValueStore())
    persistence.mark_running("1", 1234)
    remote = FakeRemoteTaskService(
        authenticated=True,
        tasks=[Task(id="1", title="Remote", status=TaskStatus.IN_PROGRESS)],
    )
    reconciler = SyncReconciler(remote, persistence)

    outcome = await reconciler.reconcile(list)

    tracking = outcome.tasks[0].time_tracking
    assert tracking.is_active is True
    assert tracking.last_started == 1234
