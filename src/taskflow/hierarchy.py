"""Parent/child index over a flat task collection."""

from collections.abc import Callable, Iterable, Mapping

from taskflow.models import Task, TaskNode


def index_tasks(tasks: Iterable[Task]) -> dict[str, Task]:
    """Build the id -> task map that every lookup below works against."""
    return {task.id: task for task in tasks}


def build_tree(tasks: Iterable[Task]) -> list[TaskNode]:
    """Group tasks into a forest and return its roots.

    A task is a root when it has no parent_id or when its parent is not
    in the given collection.
    """
    ordered = list(tasks)
    nodes = {task.id: TaskNode(task) for task in ordered}
    roots: list[TaskNode] = []

    for task in ordered:
        node = nodes[task.id]
        parent = nodes.get(task.parent_id) if task.parent_id else None
        if parent is not None:
            parent.children.append(node)
        else:
            roots.append(node)

    return roots


def get_ancestry(task: Task, all_tasks: Mapping[str, Task]) -> list[Task]:
    """Return the ancestors of a task, root first.

    Stops at the first parent that cannot be resolved.
    """
    chain: list[Task] = []
    seen = {task.id}
    parent_id = task.parent_id
    while parent_id and parent_id not in seen:
        parent = all_tasks.get(parent_id)
        if parent is None:
            break
        chain.append(parent)
        seen.add(parent_id)
        parent_id = parent.parent_id
    chain.reverse()
    return chain


def get_depth(task: Task, all_tasks: Mapping[str, Task]) -> int:
    """Depth of a task; an unresolved parent counts as a root."""
    return len(get_ancestry(task, all_tasks))


def get_descendant_ids(task_id: str, all_tasks: Mapping[str, Task]) -> list[str]:
    """Ids of a task and every descendant, depth-first, following child_ids."""
    ordered: list[str] = []
    seen: set[str] = set()

    def walk(current_id: str) -> None:
        if current_id in seen:
            return
        current = all_tasks.get(current_id)
        if current is None:
            return
        seen.add(current_id)
        for child_id in current.child_ids:
            walk(child_id)
        ordered.append(current_id)

    walk(task_id)
    return ordered


def filtered_forest(
    tasks: Iterable[Task], predicate: Callable[[Task], bool]
) -> list[TaskNode]:
    """Forest of the tasks matching predicate plus every ancestor of a match.

    Ancestors are re-included so a match is never shown without its path.
    """
    ordered = list(tasks)
    by_id = index_tasks(ordered)
    included = {task.id for task in ordered if predicate(task)}

    for task_id in list(included):
        for ancestor in get_ancestry(by_id[task_id], by_id):
            included.add(ancestor.id)

    return build_tree(task for task in ordered if task.id in included)


def relink(tasks: Iterable[Task]) -> list[Task]:
    """Make child_ids agree with parent_id and recompute depth.

    Listed children keep their order; children that only point back via
    parent_id are appended. A listed child that resolves but names a
    different parent is dropped. Unresolved child ids are kept.
    """
    ordered = list(tasks)
    by_id = index_tasks(ordered)

    pointing: dict[str, list[str]] = {}
    for task in ordered:
        if task.parent_id and task.parent_id in by_id:
            pointing.setdefault(task.parent_id, []).append(task.id)

    linked: dict[str, Task] = {}
    for task in ordered:
        child_ids = [
            child_id
            for child_id in task.child_ids
            if child_id not in by_id or by_id[child_id].parent_id == task.id
        ]
        for child_id in pointing.get(task.id, []):
            if child_id not in child_ids:
                child_ids.append(child_id)
        linked[task.id] = task.with_changes(child_ids=tuple(child_ids))

    return [
        task.with_changes(depth=get_depth(task, linked)) for task in linked.values()
    ]
