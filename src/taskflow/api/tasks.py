"""Task API endpoints."""

import logging
from datetime import datetime

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse, PlainTextResponse

from taskflow.api.models import (
    CreateTaskRequest,
    ElapsedResponse,
    ImportRequest,
    ImportResponse,
    MoveTaskRequest,
    TaskNodeResponse,
    TaskResponse,
    TimeStatsResponse,
    UpdateTaskRequest,
    node_to_response,
    stats_to_response,
    task_to_response,
)
from taskflow.errors import CompletionBlockedError, ValidationError
from taskflow.factory import get_store
from taskflow.models import TaskFilter, TaskStatus
from taskflow.stats import StatsPeriod

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/tasks", response_model=list[TaskResponse])
async def list_tasks(
    status: TaskStatus | None = None,
    search: str | None = None,
) -> list[TaskResponse]:
    """List tasks, optionally filtered by status and search term.

    Args:
        status: Only tasks with this status
        search: Case-insensitive match against title and description

    Returns:
        Flat list of matching tasks
    """
    store = get_store()
    tasks = store.filtered_tasks(TaskFilter(status=status, search_term=search))
    return [task_to_response(task) for task in tasks]


@router.get("/tasks/tree", response_model=list[TaskNodeResponse])
async def task_tree(
    status: TaskStatus | None = None,
    search: str | None = None,
) -> list[TaskNodeResponse]:
    """Task forest; a filtered forest keeps every ancestor of each match."""
    store = get_store()
    forest = store.filtered_tree(TaskFilter(status=status, search_term=search))
    return [node_to_response(node) for node in forest]


@router.post("/tasks", response_model=TaskResponse, status_code=201)
async def create_task(request: CreateTaskRequest) -> TaskResponse:
    """Create a task (optionally as a subtask).

    Args:
        request: Title, description, status, parent and due date

    Returns:
        The created task

    Raises:
        HTTPException: 422 on a blank title or unknown parent
    """
    store = get_store()
    try:
        task = store.create_task(
            title=request.title,
            description=request.description,
            status=request.status,
            parent_id=request.parent_id,
            due_date=request.due_date,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    return task_to_response(task)


@router.get("/tasks/{task_id}", response_model=TaskResponse)
async def get_task(task_id: str) -> TaskResponse:
    store = get_store()
    task = store.get_task(task_id)
    if task is None:
        raise HTTPException(status_code=404, detail=f"Task not found: {task_id}")
    return task_to_response(task)


@router.get("/tasks/{task_id}/ancestry", response_model=list[TaskResponse])
async def get_ancestry(task_id: str) -> list[TaskResponse]:
    """Ancestors of a task, root first."""
    store = get_store()
    try:
        return [task_to_response(task) for task in store.ancestry(task_id)]
    except ValidationError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@router.patch("/tasks/{task_id}", response_model=TaskResponse)
async def update_task(task_id: str, request: UpdateTaskRequest) -> TaskResponse | JSONResponse:
    """Edit task fields.

    Raises:
        HTTPException: 404 if the task does not exist, 422 on invalid input
    """
    store = get_store()
    if store.get_task(task_id) is None:
        raise HTTPException(status_code=404, detail=f"Task not found: {task_id}")

    changes = request.model_dump(exclude_unset=True)
    try:
        task = store.update_task(task_id, **changes)
    except CompletionBlockedError as e:
        return _completion_blocked(str(e), e.incomplete_child_ids)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    return task_to_response(task)


@router.delete("/tasks/{task_id}")
async def delete_task(task_id: str) -> dict[str, list[str]]:
    """Delete a task with all its subtasks.

    Args:
        task_id: Root of the subtree to delete

    Returns:
        {"deleted": [...]} with every removed id

    Raises:
        HTTPException: 404 if the task does not exist
    """
    store = get_store()
    deleted = store.delete_task(task_id)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Task not found: {task_id}")
    return {"deleted": deleted}


@router.post("/tasks/{task_id}/move", response_model=TaskResponse)
async def move_task(task_id: str, request: MoveTaskRequest) -> TaskResponse | JSONResponse:
    """Change task status; completing a task with open subtasks is rejected with 409."""
    store = get_store()
    if store.get_task(task_id) is None:
        raise HTTPException(status_code=404, detail=f"Task not found: {task_id}")

    result = store.move_task(task_id, request.status)
    if not result.ok:
        return _completion_blocked(result.error or "", result.incomplete_child_ids)
    return task_to_response(store.get_task(task_id))  # type: ignore[arg-type]


@router.post("/tasks/{task_id}/timer/start", response_model=TaskResponse)
async def start_timer(task_id: str) -> TaskResponse:
    store = get_store()
    if not store.start_timer(task_id):
        raise HTTPException(status_code=404, detail=f"Task not found: {task_id}")
    return task_to_response(store.get_task(task_id))  # type: ignore[arg-type]


@router.post("/tasks/{task_id}/timer/pause", response_model=TaskResponse)
async def pause_timer(task_id: str) -> TaskResponse:
    """Pause the running timer; pausing an idle timer is a no-op."""
    store = get_store()
    task = store.get_task(task_id)
    if task is None:
        raise HTTPException(status_code=404, detail=f"Task not found: {task_id}")
    store.pause_timer(task_id)
    return task_to_response(store.get_task(task_id))  # type: ignore[arg-type]


@router.get("/tasks/{task_id}/elapsed", response_model=ElapsedResponse)
async def get_elapsed(task_id: str) -> ElapsedResponse:
    """Live elapsed time for display; never changes stored state."""
    store = get_store()
    task = store.get_task(task_id)
    if task is None:
        raise HTTPException(status_code=404, detail=f"Task not found: {task_id}")
    return ElapsedResponse(
        task_id=task_id,
        elapsed_ms=store.get_elapsed_time(task_id),
        is_active=task.time_tracking.is_active,
    )


@router.get("/expanded")
async def list_expanded() -> dict[str, list[str]]:
    return {"expanded": sorted(get_store().expanded_nodes)}


@router.post("/expanded/{node_id}/toggle")
async def toggle_expanded(node_id: str) -> dict[str, str | bool]:
    expanded = get_store().toggle_node_expansion(node_id)
    return {"node_id": node_id, "expanded": expanded}


@router.get("/stats", response_model=TimeStatsResponse)
async def time_stats(
    period: StatsPeriod = StatsPeriod.DAY,
    start: datetime | None = None,
    end: datetime | None = None,
) -> TimeStatsResponse:
    """Time spent per task within day/week/month/year or a custom range.

    Args:
        period: Statistics period
        start: Window start for custom
        end: Window end for custom

    Returns:
        Total and per-task time, largest first
    """
    store = get_store()
    try:
        stats = store.get_time_statistics(period, start, end)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    return stats_to_response(period, stats)


@router.get("/export", response_class=PlainTextResponse)
async def export_tasks(
    status: TaskStatus | None = None,
    search: str | None = None,
) -> PlainTextResponse:
    """Export (filtered) tasks as YAML, live sessions included."""
    store = get_store()
    task_filter = TaskFilter(status=status, search_term=search)
    content = store.export(None if task_filter.is_empty else task_filter)
    return PlainTextResponse(content, media_type="application/x-yaml")


@router.post("/import", response_model=ImportResponse)
async def import_tasks(request: ImportRequest) -> ImportResponse:
    store = get_store()
    try:
        imported = store.import_tasks(request.content)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    return ImportResponse(imported_ids=imported)


@router.get("/error")
async def get_error() -> dict[str, str | None]:
    """Last validation, network or sync failure for display."""
    return {"error": get_store().error}


@router.delete("/error")
async def clear_error() -> dict[str, str | None]:
    get_store().clear_error()
    return {"error": None}


def _completion_blocked(message: str, incomplete_child_ids: list[str]) -> JSONResponse:
    logger.info(f"Completion rejected: {len(incomplete_child_ids)} incomplete subtask(s)")
    return JSONResponse(
        status_code=409,
        content={"detail": message, "incomplete_child_ids": incomplete_child_ids},
    )
