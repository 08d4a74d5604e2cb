from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Sequence

from dayplanner.domain.dates import to_date
from dayplanner.domain.entities import ProjectRef, TaskDraft, TaskEntity, TaskOrderUpdate
from dayplanner.domain.errors import TaskNotFoundError, TaskValidationError
from dayplanner.domain.filters import TaskFilters
from dayplanner.infra.repository import ProjectRepository, TaskRepository

from .board import build_buckets
from .cache import OptimisticMutation, TaskCache
from .session import SessionState

logger = logging.getLogger(__name__)


class TaskService:
    def __init__(
        self,
        repo: TaskRepository,
        projects: ProjectRepository,
        session: SessionState,
        cache: TaskCache | None = None,
    ) -> None:
        self._repo = repo
        self._projects = projects
        self._session = session
        self.cache = cache or TaskCache()

    def refresh(self) -> list[TaskEntity]:
        tasks = self._repo.get_tasks(TaskFilters(user_id=self._session.user_id))
        self.cache.replace(tasks)
        return tasks

    @property
    def tasks(self) -> list[TaskEntity]:
        return self.cache.all()

    def get_task(self, task_id: int) -> TaskEntity | None:
        return self.cache.get(task_id) or self._repo.get_task(task_id, user_id=self._session.user_id)

    def tasks_for_week(self, day: date) -> list[TaskEntity]:
        return self.cache.tasks_for_week(day)

    def buckets(self, dates: Sequence[date], project_id: int | None = None) -> dict[str, tuple[TaskEntity, ...]]:
        return build_buckets(self.cache.all(), dates, project_id)

    def list_projects(self) -> list[ProjectRef]:
        return self._projects.list_projects()

    @staticmethod
    def validate(task: TaskEntity) -> None:
        if not task.title or not task.title.strip():
            raise TaskValidationError("title", "Title is required")
        if not task.projects:
            raise TaskValidationError("projects", "At least one project is required")

    def resolve_projects(self, refs: Iterable[ProjectRef]) -> tuple[ProjectRef, ...]:
        """Return stored projects for ``refs``, creating the missing ones."""
        resolved: list[ProjectRef] = []
        for ref in refs:
            project = self._projects.find_project_by_name(ref.name)
            if project is None:
                project = self._projects.create_project(ref.name)
            if not any(project.id == existing.id for existing in resolved):
                resolved.append(project)
        return tuple(resolved)

    def create_project(self, name: str) -> ProjectRef:
        name = name.strip()
        if not name:
            raise TaskValidationError("projects", "Project name is required")
        existing = self._projects.find_project_by_name(name)
        if existing is not None:
            return existing
        return self._projects.create_project(name)

    def save_task(self, task: TaskEntity) -> TaskEntity:
        """Validate then create or update, depending on whether ``task`` has an id."""
        self.validate(task)
        if task.id is None:
            return self.create_task(task)
        return self.update_task(task)

    def create_task(self, draft: TaskDraft, notify: bool = True) -> TaskEntity:
        draft = draft.with_changes(
            title=draft.title.strip(),
            user_id=draft.user_id or self._session.user_id,
            projects=self._resolve_or_notify(draft.projects, "create"),
        )
        mutation = OptimisticMutation(
            self.cache,
            speculate=lambda cache: cache.upsert(draft),
            settle=lambda cache, result: cache.swap(draft, result),
            label="create task",
        )
        return self._run(mutation, lambda: self._repo.create_task(draft), "create", notify)

    def update_task(self, task: TaskEntity, notify: bool = True) -> TaskEntity:
        if task.id is None:
            raise TaskNotFoundError(None)
        task = task.with_changes(
            date=to_date(task.date),
            projects=self._resolve_or_notify(task.projects, "update"),
        )
        mutation = OptimisticMutation(
            self.cache,
            speculate=lambda cache: cache.upsert(task),
            label=f"update task {task.id}",
        )
        user_id = self._session.user_id
        return self._run(mutation, lambda: self._repo.update_task(task, user_id=user_id), "update", notify)

    def delete_task(self, task_id: int, notify: bool = True) -> None:
        mutation = OptimisticMutation(
            self.cache,
            speculate=lambda cache: cache.remove(task_id),
            label=f"delete task {task_id}",
        )
        user_id = self._session.user_id
        self._run(mutation, lambda: self._repo.delete_task(task_id, user_id=user_id), "delete", notify)

    def change_task(self, task_id: int, **changes) -> TaskEntity:
        task = self.get_task(task_id)
        if task is None:
            self._session.error(f"Task with ID {task_id} not found for update")
            raise TaskNotFoundError(task_id)
        return self.update_task(task.with_changes(**changes))

    def toggle_completed(self, task_id: int) -> TaskEntity:
        task = self.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return self.change_task(task_id, completed=not task.completed)

    def next_order(self, day: date) -> int:
        orders = [task.order for task in self.cache.tasks_for_date(day)]
        return max(orders) + 1 if orders else 0

    def batch_update_tasks(self, updates: list[TaskOrderUpdate]) -> None:
        self._repo.batch_update_tasks(updates, user_id=self._session.user_id)

    def _resolve_or_notify(self, refs: Iterable[ProjectRef], action: str) -> tuple[ProjectRef, ...]:
        try:
            return self.resolve_projects(refs)
        except Exception as exc:
            self._session.error(f"Failed to {action} task: {exc}")
            raise

    def _run(self, mutation: OptimisticMutation, remote, action: str, notify: bool):
        try:
            result = mutation.run(remote)
        except Exception as exc:
            self._session.error(f"Failed to {action} task: {exc}")
            raise
        if notify:
            self._session.info(f"Task {action}d successfully")
        return result
