"""Error types raised and reported by the task engine."""


class TaskflowError(Exception):
    """Base class for all engine errors."""


class ValidationError(TaskflowError):
    """Input rejected before any state was touched."""


class CompletionBlockedError(ValidationError):
    """A task cannot become Done while some of its subtasks are not Done."""

    def __init__(self, task_id: str, incomplete_child_ids: list[str]) -> None:
        self.task_id = task_id
        self.incomplete_child_ids = incomplete_child_ids
        super().__init__("Cannot complete task: subtasks incomplete")


class NetworkError(TaskflowError):
    """A remote call failed; local state stays authoritative."""


class StaleAuthError(NetworkError):
    """A remote call was made after the session was invalidated."""


class PersistenceError(TaskflowError):
    """The local key-value medium could not be read or written."""
