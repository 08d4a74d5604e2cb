from __future__ import annotations


class PlannerError(Exception):
    """Base class for errors the planner reports to the user."""


class TaskValidationError(PlannerError):
    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


class PersistenceError(PlannerError):
    pass


class TaskNotFoundError(PersistenceError):
    def __init__(self, task_id: int | None) -> None:
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


class BatchUpdateError(PersistenceError):
    """Raised when at least one record of a batch update failed.

    Records are written independently, so some of them may already be stored
    when this is raised.
    """

    def __init__(self, failed_ids: list[int], cause: Exception) -> None:
        super().__init__(f"Failed to update {len(failed_ids)} task(s): {cause}")
        self.failed_ids = failed_ids
        self.cause = cause


class SuggestionServiceError(PlannerError):
    pass


class AuthenticationError(PlannerError):
    pass


class MutationStateError(PlannerError):
    pass
