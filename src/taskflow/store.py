"""Task engine: the in-memory task collection and every operation on it."""

import asyncio
import logging
import secrets
import time
from collections.abc import Callable, Coroutine
from contextlib import suppress
from datetime import datetime, timezone
from typing import Any

from taskflow.auth import AuthEvent, AuthEventSource
from taskflow.config import MAX_SESSION_MS
from taskflow.errors import (
    CompletionBlockedError,
    NetworkError,
    StaleAuthError,
    TaskflowError,
    ValidationError,
)
from taskflow.hierarchy import (
    build_tree,
    filtered_forest,
    get_ancestry,
    get_depth,
    get_descendant_ids,
    index_tasks,
    relink,
)
from taskflow.models import Task, TaskFilter, TaskNode, TaskStatus, is_server_id
from taskflow.persistence.local_store import LocalPersistence
from taskflow.remote import (
    RemoteResult,
    RemoteTaskService,
    to_remote_changes,
    to_task_input,
)
from taskflow.stats import StatsPeriod, TimeStats, period_window, time_statistics
from taskflow.status_gate import TransitionResult, check_transition
from taskflow.sync import SyncOutcome, SyncReconciler, SyncSource
from taskflow.timer import close_session, elapsed, now_ms, open_session, session_expired
from taskflow.transfer import export_tasks, parse_import

logger = logging.getLogger(__name__)

StoreListener = Callable[[dict[str, Any]], None]

UPDATABLE_FIELDS = frozenset({"title", "description", "status", "due_date", "parent_id"})
REMOTE_FIELDS = ("title", "description", "status", "parent_id", "due_date")


def generate_id() -> str:
    """Locally generated task id; never all digits, so never mistaken for a server id."""
    task_id = _base36(int(time.time() * 1000)) + secrets.token_hex(3)
    return task_id if not task_id.isdigit() else f"x{task_id}"


def _status_arg(value: TaskStatus | str) -> TaskStatus:
    """Strict status conversion for caller input; stored data uses TaskStatus.parse."""
    if isinstance(value, TaskStatus):
        return value
    try:
        return TaskStatus(value)
    except ValueError as e:
        raise ValidationError(f"Unknown status: {value!r}") from e


def _base36(value: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    out = ""
    while value:
        value, rem = divmod(value, 36)
        out = digits[rem] + out
    return out or "0"


class TaskStore:
    """Owns the working task set.

    Every mutation replaces the id -> task map with a new one, persists it
    locally and, when a remote session exists, schedules the matching
    remote call in the background. Remote failures set `error` and never
    undo local state.
    """

    def __init__(
        self,
        persistence: LocalPersistence,
        remote: RemoteTaskService,
        auth_events: AuthEventSource | None = None,
        clock: Callable[[], int] = now_ms,
        max_session_ms: int = MAX_SESSION_MS,
        cap_check_interval_seconds: float = 0.0,
        seed_default_tasks: bool = True,
        id_factory: Callable[[], str] = generate_id,
    ) -> None:
        """Initialize an empty store; call init() to load state."""
        self._persistence = persistence
        self._remote = remote
        self._auth_events = auth_events
        self._clock = clock
        self._max_session_ms = max_session_ms
        self._cap_check_interval = cap_check_interval_seconds
        self._id_factory = id_factory
        self._reconciler = SyncReconciler(remote, persistence, seed_default_tasks)

        self._tasks: dict[str, Task] = {}
        self._expanded: frozenset[str] = frozenset()
        self._source = SyncSource.LOCAL
        self._error: str | None = None
        self._listeners: list[StoreListener] = []
        self._background_tasks: set[asyncio.Task[None]] = set()
        self._generation = 0
        self._unsubscribe_auth: Callable[[], None] | None = None
        self._cap_watchdog: asyncio.Task[None] | None = None
        self._initialized = False

    # ---- lifecycle ----

    async def init(self) -> None:
        """Load the local cache, reconcile with remote if signed in, subscribe to auth events."""
        if self._initialized:
            return
        self._initialized = True

        self._apply_outcome(self._reconciler.load_local(), persist=False)
        self._expanded = frozenset(self._reconciler.load_expanded_nodes())

        if self._auth_events is not None:
            self._unsubscribe_auth = self._auth_events.subscribe(self._on_auth_event)

        if self._remote.is_authenticated():
            await self.resync()

        if self._cap_check_interval > 0:
            self._cap_watchdog = asyncio.create_task(
                self._watch_session_cap(), name="taskflow-session-cap"
            )
        logger.info(f"[TaskStore] Ready with {len(self._tasks)} task(s)")

    async def dispose(self) -> None:
        """Unsubscribe from auth events, stop the watchdog, finish pending remote calls."""
        if self._unsubscribe_auth is not None:
            self._unsubscribe_auth()
            self._unsubscribe_auth = None
        if self._cap_watchdog is not None:
            self._cap_watchdog.cancel()
            with suppress(asyncio.CancelledError):
                await self._cap_watchdog
            self._cap_watchdog = None
        await self.drain()
        self._initialized = False
        logger.info("[TaskStore] Disposed")

    async def drain(self) -> None:
        """Wait until every scheduled remote call has finished."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    # ---- auth transitions ----

    def _on_auth_event(self, event: AuthEvent) -> None:
        self._spawn(self.handle_auth_event(event), name=f"auth-{event.value}")

    async def handle_auth_event(self, event: AuthEvent) -> None:
        """React to a sign-in or sign-out.

        Sign-out drops everything that came from the remote session and
        goes back to the offline cache; sign-in reconciles with remote.

        Args:
            event: The auth transition that happened
        """
        logger.info(f"[TaskStore] Auth event {event.value}")
        if event == AuthEvent.SIGNED_OUT:
            self._generation += 1
            self._persistence.clear_session_tasks()
            self._apply_outcome(self._reconciler.load_local(), persist=False)
            self._expanded = frozenset(self._reconciler.load_expanded_nodes())
        elif event == AuthEvent.SIGNED_IN:
            await self.resync()

    async def resync(self) -> SyncOutcome:
        """Re-derive the working set from the remote snapshot and local state.

        A failed fetch keeps the current working set and only reports the
        error. A result overtaken by a newer auth transition is dropped.

        Returns:
            The reconciliation outcome, applied or not
        """
        self._generation += 1
        generation = self._generation
        outcome = await self._reconciler.reconcile(self._merge_base)
        if generation != self._generation:
            logger.info("[TaskStore] Discarding superseded reconciliation result")
            return outcome
        if outcome.source == SyncSource.LOCAL:
            if outcome.error:
                self._set_error(outcome.error)
            return outcome
        self._apply_outcome(outcome)
        return outcome

    def _apply_outcome(self, outcome: SyncOutcome, persist: bool = True) -> None:
        tasks = index_tasks(outcome.tasks)
        self._source = outcome.source
        if persist:
            self._commit(tasks)
        else:
            self._tasks = tasks
            self._notify({"type": "tasks_changed"})
        self._sync_running_markers()
        if outcome.error:
            self._set_error(outcome.error)

    def _merge_base(self) -> list[Task]:
        """Local side of a reconciliation.

        Coming from offline, the snapshot of the last signed-in session
        supplies the time tracking of server tasks; offline tasks it does
        not know are added.
        """
        current = list(self._tasks.values())
        if self._source == SyncSource.REMOTE:
            return current
        snapshot = self._persistence.load_session_tasks() or []
        known = {task.id for task in snapshot}
        return [*snapshot, *(task for task in current if task.id not in known)]

    # ---- queries ----

    @property
    def tasks(self) -> list[Task]:
        return list(self._tasks.values())

    @property
    def expanded_nodes(self) -> frozenset[str]:
        return self._expanded

    @property
    def error(self) -> str | None:
        """Last human-readable failure for the UI, if any."""
        return self._error

    @property
    def is_authenticated(self) -> bool:
        return self._remote.is_authenticated()

    def get_task(self, task_id: str) -> Task | None:
        return self._tasks.get(task_id)

    def get_tasks_by_status(self, status: TaskStatus) -> list[Task]:
        return [task for task in self._tasks.values() if task.status == status]

    def tree(self) -> list[TaskNode]:
        return build_tree(self._tasks.values())

    def filtered_tasks(self, task_filter: TaskFilter) -> list[Task]:
        return [task for task in self._tasks.values() if task_filter.matches(task)]

    def filtered_tree(self, task_filter: TaskFilter) -> list[TaskNode]:
        """Forest of matches plus their ancestors; the full tree when the filter is empty."""
        if task_filter.is_empty:
            return self.tree()
        return filtered_forest(self._tasks.values(), task_filter.matches)

    def ancestry(self, task_id: str) -> list[Task]:
        task = self._require(task_id)
        return get_ancestry(task, self._tasks)

    def get_elapsed_time(self, task_id: str) -> int:
        """Committed time plus the live session; read-only."""
        task = self._tasks.get(task_id)
        if task is None:
            return 0
        return elapsed(task.time_tracking, self._clock(), self._max_session_ms)

    def get_time_statistics(
        self,
        period: StatsPeriod = StatsPeriod.DAY,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> TimeStats:
        """Time spent per task within a period.

        Args:
            period: day, week, month, year or custom
            start: Window start, custom only
            end: Window end, custom only

        Returns:
            Totals per task, largest first

        Raises:
            ValidationError: custom without both bounds, or end before start
        """
        now = self._clock()
        try:
            window_start, window_end = period_window(period, now, start, end)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        return time_statistics(
            self._tasks.values(), window_start, window_end, now, self._max_session_ms
        )

    # ---- error signal and listeners ----

    def clear_error(self) -> None:
        self._error = None

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register for change events.

        Args:
            listener: Called with {"type": "tasks_changed"} or
                {"type": "error", "message": ...}

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ---- task mutations ----

    def create_task(
        self,
        title: str,
        description: str = "",
        status: TaskStatus | str = TaskStatus.OPEN,
        parent_id: str | None = None,
        due_date: datetime | None = None,
    ) -> Task:
        """Create a task optimistically under an optional parent.

        Args:
            title: Non-blank task title
            description: Free text
            status: Initial status
            parent_id: Id of an existing task to nest under
            due_date: Optional due date

        Returns:
            The created task under its local id

        Raises:
            ValidationError: On a blank title, unknown status or unknown parent
        """
        status = _status_arg(status)
        if not title or not title.strip():
            raise ValidationError("Title is required")

        parent = None
        if parent_id:
            parent = self._tasks.get(parent_id)
            if parent is None:
                raise ValidationError(f"Parent task not found: {parent_id}")

        task = Task(
            id=self._new_id(),
            title=title.strip(),
            description=description or "",
            status=status,
            created_at=datetime.fromtimestamp(self._clock() / 1000, tz=timezone.utc),
            due_date=due_date,
            parent_id=parent.id if parent else None,
            depth=parent.depth + 1 if parent else 0,
        )

        tasks = dict(self._tasks)
        tasks[task.id] = task
        if parent is not None:
            tasks[parent.id] = parent.with_changes(child_ids=(*parent.child_ids, task.id))
        self._commit(tasks)
        logger.info(f"[TaskStore] Created task {task.id} (parent={task.parent_id})")

        if self._remote.is_authenticated():
            self._spawn(self._push_creates([task.id]), name=f"create-{task.id}")
        return task

    def update_task(self, task_id: str, **changes: Any) -> Task:
        """Apply field edits in one update.

        A status change goes through the completion gate and, when it stops
        work, closes a running session in the same update. Changing
        parent_id moves the task and its subtree.

        Args:
            task_id: Task to edit
            **changes: Any of title, description, status, due_date, parent_id

        Returns:
            The task after the edit

        Raises:
            CompletionBlockedError: Status Done while subtasks are open
            ValidationError: Unknown task, field or status; bad title; cyclic parent
        """
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

        task = self._require(task_id)
        tasks = dict(self._tasks)
        updated = task
        changed: set[str] = set()

        if "title" in changes:
            title = changes["title"]
            if not title or not str(title).strip():
                raise ValidationError("Title is required")
            updated = updated.with_changes(title=str(title).strip())
        if "description" in changes:
            updated = updated.with_changes(description=changes["description"] or "")
        if "due_date" in changes:
            updated = updated.with_changes(due_date=changes["due_date"])

        closed_duration = None
        if "status" in changes:
            new_status = _status_arg(changes["status"])
            if new_status != task.status:
                result = check_transition(task, new_status, tasks)
                if not result.ok:
                    self._set_error(result.error or "Status change rejected")
                    raise CompletionBlockedError(task_id, result.incomplete_child_ids)
                updated, closed_duration = self._with_status(updated, new_status)

        for field_name in ("title", "description", "due_date", "status"):
            if getattr(updated, field_name) != getattr(task, field_name):
                changed.add(field_name)

        tasks[task_id] = updated
        if "parent_id" in changes and (changes["parent_id"] or None) != task.parent_id:
            tasks = self._reparent(tasks, task_id, changes["parent_id"] or None)
            changed.add("parent_id")

        if not changed:
            return task

        self._commit(tasks)
        if closed_duration is not None:
            self._persistence.clear_running(task_id)
        self._after_remote_update(task_id, changed, closed_duration)
        return self._tasks[task_id]

    def move_task(self, task_id: str, new_status: TaskStatus | str) -> TransitionResult:
        """Status change entry point for board drops and selectors.

        Rejected moves leave the task untouched.

        Args:
            task_id: Task to move
            new_status: Target status

        Returns:
            TransitionResult; on rejection `error` is also set
        """
        task = self._tasks.get(task_id)
        if task is None:
            return TransitionResult.rejected(f"Task not found: {task_id}")

        try:
            status = _status_arg(new_status)
        except ValidationError as e:
            self._set_error(str(e))
            return TransitionResult.rejected(str(e))
        result = check_transition(task, status, self._tasks)
        if not result.ok:
            self._set_error(result.error or "Status change rejected")
            return result
        if status == task.status:
            return result

        updated, closed_duration = self._with_status(task, status)
        tasks = dict(self._tasks)
        tasks[task_id] = updated
        self._commit(tasks)
        if closed_duration is not None:
            self._persistence.clear_running(task_id)
        logger.info(f"[TaskStore] Moved {task_id}: {task.status.value} -> {status.value}")

        self._after_remote_update(task_id, {"status"}, closed_duration)
        return result

    def delete_task(self, task_id: str) -> list[str]:
        """Delete a task and every descendant.

        Local removal is immediate; remote deletes run per task afterwards
        and a failure only sets `error`.

        Args:
            task_id: Root of the subtree to remove

        Returns:
            Removed ids, descendants before their parents; empty if unknown
        """
        if task_id not in self._tasks:
            return []

        doomed = get_descendant_ids(task_id, self._tasks)
        doomed_set = set(doomed)
        tasks: dict[str, Task] = {}
        for task in self._tasks.values():
            if task.id in doomed_set:
                continue
            if doomed_set.intersection(task.child_ids):
                task = task.with_changes(
                    child_ids=tuple(c for c in task.child_ids if c not in doomed_set)
                )
            tasks[task.id] = task

        self._commit(tasks)
        self._persistence.clear_running(*doomed)
        if doomed_set & self._expanded:
            self._expanded = self._expanded - doomed_set
            self._persistence.save_expanded_nodes(set(self._expanded))
        logger.info(f"[TaskStore] Deleted {task_id} with {len(doomed) - 1} descendant(s)")

        if self._remote.is_authenticated():
            for doomed_id in doomed:
                if is_server_id(doomed_id):
                    self._spawn(self._push_delete(doomed_id), name=f"delete-{doomed_id}")
        return doomed

    # ---- timers ----

    def start_timer(self, task_id: str) -> bool:
        """Start a session, moving the task to In Progress if needed.

        Starting a running timer changes nothing.

        Args:
            task_id: Task to time

        Returns:
            False if the task does not exist
        """
        task = self._tasks.get(task_id)
        if task is None:
            logger.warning(f"[TaskStore] start_timer: unknown task {task_id}")
            return False

        now = self._clock()
        tracking = open_session(task.time_tracking, now)
        status_changed = task.status != TaskStatus.IN_PROGRESS
        started = tracking is not task.time_tracking
        if not status_changed and not started:
            return True

        tasks = dict(self._tasks)
        tasks[task_id] = task.with_changes(
            status=TaskStatus.IN_PROGRESS, time_tracking=tracking
        )
        self._commit(tasks)
        if started:
            self._persistence.mark_running(task_id, now)
            logger.debug(f"[TaskStore] Timer started for {task_id} at {now}")

        if status_changed:
            self._after_remote_update(task_id, {"status"}, None)
        return True

    def pause_timer(self, task_id: str) -> bool:
        """Close the open session and credit it, capped at the session maximum.

        Args:
            task_id: Task whose timer to pause

        Returns:
            False when the task is unknown or nothing was running
        """
        task = self._tasks.get(task_id)
        if task is None or not task.time_tracking.is_active:
            return False

        tracking, duration = close_session(
            task.time_tracking, self._clock(), self._max_session_ms
        )
        tasks = dict(self._tasks)
        tasks[task_id] = task.with_changes(time_tracking=tracking)
        self._commit(tasks)
        self._persistence.clear_running(task_id)
        logger.debug(f"[TaskStore] Timer paused for {task_id}: {duration}ms")

        self._after_remote_update(task_id, set(), duration)
        return True

    def enforce_session_cap(self) -> list[str]:
        """Pause every session that has reached the maximum duration."""
        now = self._clock()
        expired = [
            task.id
            for task in self._tasks.values()
            if session_expired(task.time_tracking, now, self._max_session_ms)
        ]
        for task_id in expired:
            logger.info(f"[TaskStore] Session cap reached for {task_id}; pausing")
            self.pause_timer(task_id)
        return expired

    async def _watch_session_cap(self) -> None:
        while True:
            await asyncio.sleep(self._cap_check_interval)
            try:
                self.enforce_session_cap()
            except Exception as e:
                logger.error(f"[TaskStore] Session cap check failed: {e}", exc_info=True)

    # ---- tree view state ----

    def toggle_node_expansion(self, node_id: str) -> bool:
        """Flip a node's expanded state; returns whether it is now expanded."""
        if node_id in self._expanded:
            self._expanded = self._expanded - {node_id}
        else:
            self._expanded = self._expanded | {node_id}
        self._persistence.save_expanded_nodes(set(self._expanded))
        return node_id in self._expanded

    # ---- export / import ----

    def export(self, task_filter: TaskFilter | None = None) -> str:
        tasks = self.filtered_tasks(task_filter) if task_filter else self.tasks
        return export_tasks(tasks, self._clock(), self._max_session_ms)

    def import_tasks(self, text: str) -> list[str]:
        """Add tasks from an export under fresh ids.

        Args:
            text: YAML document produced by export()

        Returns:
            Ids of the imported tasks, in document order

        Raises:
            ValidationError: If the document cannot be parsed
        """
        drafts = parse_import(text)
        if not drafts:
            return []

        id_map = {draft.id: self._new_id() for draft in drafts}
        imported: list[Task] = []
        for draft in drafts:
            parent_id = draft.parent_id
            if parent_id in id_map:
                parent_id = id_map[parent_id]
            elif parent_id not in self._tasks:
                parent_id = None
            imported.append(
                draft.with_changes(id=id_map[draft.id], parent_id=parent_id, child_ids=())
            )

        tasks = index_tasks(relink([*self._tasks.values(), *imported]))
        self._commit(tasks)
        new_ids = [task.id for task in imported]
        logger.info(f"[TaskStore] Imported {len(new_ids)} task(s)")

        if self._remote.is_authenticated():
            self._spawn(self._push_creates(new_ids), name="import")
        return new_ids

    # ---- internals ----

    def _require(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise ValidationError(f"Task not found: {task_id}")
        return task

    def _new_id(self) -> str:
        task_id = self._id_factory()
        while task_id in self._tasks:
            task_id = self._id_factory()
        return task_id

    def _with_status(self, task: Task, status: TaskStatus) -> tuple[Task, int | None]:
        """Status change merged with the session close it implies, computed once."""
        tracking = task.time_tracking
        duration = None
        if tracking.is_active and status in (TaskStatus.DONE, TaskStatus.OPEN):
            tracking, duration = close_session(tracking, self._clock(), self._max_session_ms)
        return task.with_changes(status=status, time_tracking=tracking), duration

    def _reparent(
        self, tasks: dict[str, Task], task_id: str, new_parent_id: str | None
    ) -> dict[str, Task]:
        task = tasks[task_id]
        if new_parent_id is not None:
            if new_parent_id not in tasks:
                raise ValidationError(f"Parent task not found: {new_parent_id}")
            if new_parent_id in get_descendant_ids(task_id, tasks):
                raise ValidationError("A task cannot be moved under itself or its subtasks")

        if task.parent_id and task.parent_id in tasks:
            old_parent = tasks[task.parent_id]
            tasks[old_parent.id] = old_parent.with_changes(
                child_ids=tuple(c for c in old_parent.child_ids if c != task_id)
            )
        if new_parent_id is not None:
            new_parent = tasks[new_parent_id]
            tasks[new_parent_id] = new_parent.with_changes(
                child_ids=(*new_parent.child_ids, task_id)
            )
        tasks[task_id] = task.with_changes(parent_id=new_parent_id)

        for moved_id in get_descendant_ids(task_id, tasks):
            moved = tasks[moved_id]
            tasks[moved_id] = moved.with_changes(depth=get_depth(moved, tasks))
        return tasks

    def _commit(self, tasks: dict[str, Task]) -> None:
        self._tasks = tasks
        if self._source == SyncSource.REMOTE:
            self._persistence.save_session_tasks(list(tasks.values()))
        else:
            self._persistence.save_tasks(list(tasks.values()))
        self._notify({"type": "tasks_changed"})

    def _sync_running_markers(self) -> None:
        markers = {
            task.id: task.time_tracking.last_started
            for task in self._tasks.values()
            if task.time_tracking.is_active and task.time_tracking.last_started is not None
        }
        if markers != self._persistence.load_running_timers():
            self._persistence.replace_running(markers)

    def _set_error(self, message: str) -> None:
        self._error = message
        self._notify({"type": "error", "message": message})

    def _notify(self, event: dict[str, Any]) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"[TaskStore] Listener error: {e}", exc_info=True)

    def _adopt_server_id(self, local_id: str, server_id: str) -> bool:
        """Rename local_id to server_id everywhere; False if server_id is already taken."""
        if local_id == server_id:
            return True
        if server_id in self._tasks:
            logger.warning(
                f"[TaskStore] Server id {server_id} for {local_id} is already in use; not adopting"
            )
            return False

        def rename(value: str | None) -> str | None:
            return server_id if value == local_id else value

        tasks: dict[str, Task] = {}
        for task in self._tasks.values():
            if task.id == local_id or task.parent_id == local_id or local_id in task.child_ids:
                task = task.with_changes(
                    id=server_id if task.id == local_id else task.id,
                    parent_id=rename(task.parent_id),
                    child_ids=tuple(server_id if c == local_id else c for c in task.child_ids),
                )
            tasks[task.id] = task
        self._commit(tasks)
        self._persistence.rename_running(local_id, server_id)
        if local_id in self._expanded:
            self._expanded = (self._expanded - {local_id}) | {server_id}
            self._persistence.save_expanded_nodes(set(self._expanded))
        logger.info(f"[TaskStore] Task {local_id} is now {server_id} on the server")
        return True

    # ---- remote calls ----

    def _spawn(self, coro: Coroutine[Any, Any, None], name: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.warning(f"[TaskStore] No running event loop; skipped remote call {name}")
            return
        background_task = loop.create_task(coro, name=f"taskflow-{name}")
        self._background_tasks.add(background_task)
        background_task.add_done_callback(self._background_tasks.discard)

    def _after_remote_update(
        self, task_id: str, fields: set[str], closed_duration: int | None
    ) -> None:
        if not self._remote.is_authenticated():
            return
        if fields:
            self._spawn(self._push_update(task_id, fields), name=f"update-{task_id}")
        if closed_duration is not None:
            self._spawn(
                self._push_time_summary(task_id, closed_duration), name=f"time-{task_id}"
            )

    async def _call_remote(
        self, label: str, call: Coroutine[Any, Any, RemoteResult[Any]]
    ) -> RemoteResult[Any] | None:
        try:
            result = await call
        except Exception as e:
            self._report_remote_failure(label, NetworkError(str(e) or type(e).__name__))
            return None
        if result.error is not None:
            error_cls = NetworkError if self._remote.is_authenticated() else StaleAuthError
            self._report_remote_failure(label, error_cls(result.error))
            return None
        return result

    def _report_remote_failure(self, label: str, error: TaskflowError) -> None:
        logger.warning(f"[TaskStore] {label} failed ({type(error).__name__}): {error}")
        self._set_error(f"{label} failed: {error}")

    async def _push_creates(self, local_ids: list[str]) -> None:
        """Create tasks remotely one after another so parents get server ids first."""
        for local_id in local_ids:
            task = self._tasks.get(local_id)
            if task is None:
                continue
            result = await self._call_remote(
                "Create task", self._remote.create_task(to_task_input(task))
            )
            if result is None or result.data is None:
                continue
            if local_id not in self._tasks:
                logger.info(f"[TaskStore] {local_id} was deleted before the server answered")
                continue

            server_task: Task = result.data
            if not self._adopt_server_id(local_id, server_task.id):
                continue
            current = self._tasks.get(server_task.id)
            if current is None:
                continue
            drift = {
                name
                for name in REMOTE_FIELDS
                if name != "due_date" and getattr(current, name) != getattr(server_task, name)
            }
            if current.parent_id and not is_server_id(current.parent_id):
                drift.discard("parent_id")
            if drift:
                await self._push_update(server_task.id, drift)

    async def _push_update(self, task_id: str, fields: set[str]) -> None:
        task = self._tasks.get(task_id)
        if task is None:
            return
        if not is_server_id(task_id):
            logger.debug(f"[TaskStore] {task_id} not synced yet; update deferred to create")
            return
        changes = to_remote_changes(task, fields)
        if not changes:
            return
        await self._call_remote("Update task", self._remote.update_task(task_id, changes))

    async def _push_delete(self, task_id: str) -> None:
        await self._call_remote("Delete task", self._remote.delete_task(task_id))

    async def _push_time_summary(self, task_id: str, duration_ms: int) -> None:
        if not is_server_id(task_id):
            return
        try:
            await self._remote.record_time_summary(task_id, duration_ms)
        except Exception as e:
            logger.debug(f"[TaskStore] Ignoring time summary failure for {task_id}: {e}")
