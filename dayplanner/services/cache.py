from __future__ import annotations

import logging
from datetime import date
from typing import Callable, Iterable, Optional, TypeVar

from dayplanner.domain.dates import date_key, week_bounds
from dayplanner.domain.entities import TaskEntity
from dayplanner.domain.enums import MutationState
from dayplanner.domain.errors import MutationStateError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TaskCache:
    """Client-side copy of the task collection last fetched from the server."""

    def __init__(self, tasks: Iterable[TaskEntity] = ()) -> None:
        self._tasks: list[TaskEntity] = list(tasks)

    def __len__(self) -> int:
        return len(self._tasks)

    def all(self) -> list[TaskEntity]:
        return list(self._tasks)

    def replace(self, tasks: Iterable[TaskEntity]) -> None:
        self._tasks = list(tasks)

    def snapshot(self) -> tuple[TaskEntity, ...]:
        return tuple(self._tasks)

    def restore(self, snapshot: tuple[TaskEntity, ...]) -> None:
        self._tasks = list(snapshot)

    def get(self, task_id: int) -> Optional[TaskEntity]:
        return next((task for task in self._tasks if task.id == task_id), None)

    def upsert(self, task: TaskEntity) -> None:
        for index, existing in enumerate(self._tasks):
            if task.id is not None and existing.id == task.id:
                self._tasks[index] = task
                return
        self._tasks.insert(0, task)

    def swap(self, old: TaskEntity, new: TaskEntity) -> None:
        for index, existing in enumerate(self._tasks):
            if existing is old:
                self._tasks[index] = new
                return
        self.upsert(new)

    def remove(self, task_id: int) -> None:
        self._tasks = [task for task in self._tasks if task.id != task_id]

    def tasks_for_date(self, day: date | str) -> list[TaskEntity]:
        key = date_key(day)
        return [task for task in self._tasks if task.key == key]

    def tasks_for_week(self, day: date) -> list[TaskEntity]:
        start, end = week_bounds(day)
        start_key, end_key = date_key(start), date_key(end)
        return [task for task in self._tasks if start_key <= task.key <= end_key]


Speculation = Callable[[TaskCache], None]
Settlement = Callable[[TaskCache, object], None]


def _upsert_result(cache: TaskCache, result: object) -> None:
    if isinstance(result, TaskEntity):
        cache.upsert(result)


class OptimisticMutation:
    """One optimistic change of the task cache.

    ``apply`` stores a pre-image and runs the speculative change. The mutation
    then ends in ``confirm`` (server result replaces the speculative entry) or
    ``rollback`` (pre-image restored). Terminal states cannot be left.
    """

    def __init__(
        self,
        cache: TaskCache,
        speculate: Speculation,
        settle: Settlement = _upsert_result,
        label: str = "mutation",
    ) -> None:
        self._cache = cache
        self._speculate = speculate
        self._settle = settle
        self._pre_image: tuple[TaskEntity, ...] | None = None
        self.label = label
        self.state = MutationState.IDLE

    def apply(self) -> None:
        if self.state != MutationState.IDLE:
            raise MutationStateError(f"{self.label} already applied ({self.state})")
        self._pre_image = self._cache.snapshot()
        self._speculate(self._cache)
        self.state = MutationState.PENDING

    def confirm(self, result: object = None) -> None:
        self._require_pending()
        self._settle(self._cache, result)
        self._pre_image = None
        self.state = MutationState.CONFIRMED

    def rollback(self) -> None:
        self._require_pending()
        self._cache.restore(self._pre_image)
        self._pre_image = None
        self.state = MutationState.ROLLED_BACK
        logger.info("Rolled back %s", self.label)

    def run(self, remote: Callable[[], T]) -> T:
        self.apply()
        try:
            result = remote()
        except Exception:
            self.rollback()
            raise
        self.confirm(result)
        return result

    def _require_pending(self) -> None:
        if self.state != MutationState.PENDING:
            raise MutationStateError(f"{self.label} is not pending ({self.state})")
