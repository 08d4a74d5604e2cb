from __future__ import annotations

from datetime import date

from dayplanner.domain.entities import ProjectRef, TaskEntity, TaskOrderUpdate
from dayplanner.domain.errors import BatchUpdateError, PersistenceError, TaskNotFoundError
from dayplanner.domain.filters import TaskFilters


def make_task(task_id: int, day: date, order: int = 0, **extra) -> TaskEntity:
    extra.setdefault("title", f"Task {task_id}")
    return TaskEntity(id=task_id, date=day, order=order, **extra)


class FakeRepo:
    def __init__(self, tasks: list[TaskEntity] | None = None) -> None:
        self.tasks: list[TaskEntity] = list(tasks or [])
        self._id = max((t.id for t in self.tasks), default=0) + 1
        self.calls: list[tuple[str, object]] = []
        self.filters: list[TaskFilters] = []
        self.fail_on: set[str] = set()
        self.batches: list[list[TaskOrderUpdate]] = []

    def _check(self, name: str) -> None:
        if name in self.fail_on:
            raise PersistenceError(f"{name} failed")

    def get_tasks(self, filters: TaskFilters | None = None) -> list[TaskEntity]:
        self._check("get")
        self.filters.append(filters)
        return list(self.tasks)

    def get_task(self, task_id: int, user_id: str | None = None) -> TaskEntity | None:
        return next(
            (t for t in self.tasks if t.id == task_id and t.user_id in (None, user_id)),
            None,
        )

    def create_task(self, task: TaskEntity) -> TaskEntity:
        self._check("create")
        created = task.with_changes(id=self._id)
        self._id += 1
        self.tasks.append(created)
        self.calls.append(("create", created.id))
        return created

    def update_task(self, task: TaskEntity, user_id: str | None = None) -> TaskEntity:
        self._check("update")
        if self.get_task(task.id, user_id) is None:
            raise TaskNotFoundError(task.id)
        self.tasks = [task if t.id == task.id else t for t in self.tasks]
        self.calls.append(("update", task.id))
        return task

    def delete_task(self, task_id: int, user_id: str | None = None) -> None:
        self._check("delete")
        if self.get_task(task_id, user_id) is None:
            return
        self.tasks = [t for t in self.tasks if t.id != task_id]
        self.calls.append(("delete", task_id))

    def batch_update_tasks(self, updates: list[TaskOrderUpdate], user_id: str | None = None) -> None:
        self.batches.append(list(updates))
        if "batch" in self.fail_on:
            raise BatchUpdateError([u.id for u in updates], PersistenceError("batch failed"))


class FakeProjects:
    def __init__(self, names: list[str] | None = None) -> None:
        self.projects: list[ProjectRef] = []
        self.created: list[str] = []
        for name in names or []:
            self.projects.append(ProjectRef(id=len(self.projects) + 1, name=name))

    def list_projects(self) -> list[ProjectRef]:
        return sorted(self.projects, key=lambda p: p.name)

    def find_project_by_name(self, name: str) -> ProjectRef | None:
        return next((p for p in self.projects if p.name.lower() == name.strip().lower()), None)

    def create_project(self, name: str) -> ProjectRef:
        project = ProjectRef(id=len(self.projects) + 1, name=name.strip())
        self.projects.append(project)
        self.created.append(project.name)
        return project
