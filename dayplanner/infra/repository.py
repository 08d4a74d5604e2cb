from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterable, Iterator, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dayplanner.domain.dates import to_date
from dayplanner.domain.entities import ProjectRef, TaskEntity, TaskOrderUpdate
from dayplanner.domain.errors import BatchUpdateError, PersistenceError, TaskNotFoundError
from dayplanner.domain.filters import TaskFilters

from .db import SessionLocal
from .models import ProjectModel, TaskModel

logger = logging.getLogger(__name__)


def _to_project(model: ProjectModel) -> ProjectRef:
    return ProjectRef(id=model.id, name=model.name)


def _to_entity(model: TaskModel) -> TaskEntity:
    return TaskEntity(
        id=model.id,
        title=model.title,
        description=model.description or "",
        notes=model.notes,
        date=model.date,
        completed=bool(model.completed),
        estimated_time=model.estimated_time or 0,
        order=model.order or 0,
        user_id=model.user_id,
        projects=tuple(_to_project(project) for project in model.projects),
    )


def _apply_filters(stmt, filters: TaskFilters) -> object:
    if filters.user_id:
        stmt = stmt.where(TaskModel.user_id == filters.user_id)
    return stmt


def _owned(session: Session, task_id: int, user_id: str | None) -> Optional[TaskModel]:
    model = session.get(TaskModel, task_id)
    if model is None or (user_id and model.user_id != user_id):
        return None
    return model


class _SessionMixin:
    def __init__(self, session_factory=SessionLocal) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        with self._session_factory() as session:
            try:
                yield session
            except SQLAlchemyError as exc:
                session.rollback()
                raise PersistenceError(str(exc)) from exc


class TaskRepository(_SessionMixin):
    def get_tasks(self, filters: TaskFilters | None = None) -> list[TaskEntity]:
        with self._session() as session:
            stmt = _apply_filters(select(TaskModel), filters or TaskFilters())
            stmt = stmt.order_by(TaskModel.order.asc(), TaskModel.id.asc())
            return [_to_entity(task) for task in session.scalars(stmt)]

    def get_task(self, task_id: int, user_id: str | None = None) -> Optional[TaskEntity]:
        with self._session() as session:
            task = _owned(session, task_id, user_id)
            return _to_entity(task) if task else None

    def create_task(self, task: TaskEntity) -> TaskEntity:
        with self._session() as session:
            model = TaskModel(
                title=task.title,
                description=task.description or "",
                notes=task.notes,
                date=to_date(task.date),
                completed=task.completed,
                estimated_time=task.estimated_time,
                order=task.order,
                user_id=task.user_id,
            )
            model.projects = self._load_projects(session, task.projects)
            session.add(model)
            session.commit()
            session.refresh(model)
            logger.info("Created task %s on %s", model.id, model.date)
            return _to_entity(model)

    def update_task(self, task: TaskEntity, user_id: str | None = None) -> TaskEntity:
        if task.id is None:
            raise TaskNotFoundError(None)
        with self._session() as session:
            model = _owned(session, task.id, user_id)
            if not model:
                raise TaskNotFoundError(task.id)
            model.title = task.title
            model.description = task.description or ""
            model.notes = task.notes
            model.date = to_date(task.date)
            model.completed = task.completed
            model.estimated_time = task.estimated_time
            model.order = task.order
            model.projects = self._load_projects(session, task.projects)
            session.commit()
            session.refresh(model)
            return _to_entity(model)

    def delete_task(self, task_id: int, user_id: str | None = None) -> None:
        with self._session() as session:
            task = _owned(session, task_id, user_id)
            if not task:
                return
            session.delete(task)
            session.commit()

    def update_task_order(self, task_id: int, order: int, user_id: str | None = None) -> None:
        self._apply_order_update(TaskOrderUpdate(id=task_id, order=order), user_id)

    def batch_update_tasks(
        self,
        updates: Iterable[TaskOrderUpdate],
        user_id: str | None = None,
    ) -> None:
        """Write every record in its own transaction.

        The batch is not atomic: when a record fails the others are still
        attempted and may be stored. The first failure is re-raised wrapped in
        ``BatchUpdateError`` once all records ran.
        """
        updates = list(updates)
        if not updates:
            return
        failed_ids: list[int] = []
        first_error: Exception | None = None
        for update in updates:
            try:
                if update.date is None:
                    self.update_task_order(update.id, update.order, user_id)
                else:
                    self._apply_order_update(update, user_id)
            except PersistenceError as exc:
                logger.warning("Batch update failed for task %s: %s", update.id, exc)
                failed_ids.append(update.id)
                first_error = first_error or exc
        if first_error is not None:
            raise BatchUpdateError(failed_ids, first_error)
        logger.info("Batch updated %d task(s)", len(updates))

    def _apply_order_update(self, update: TaskOrderUpdate, user_id: str | None = None) -> None:
        with self._session() as session:
            model = _owned(session, update.id, user_id)
            if not model:
                raise TaskNotFoundError(update.id)
            model.order = update.order
            if update.date is not None:
                model.date = to_date(update.date)
            session.commit()

    @staticmethod
    def _load_projects(session: Session, refs: Iterable[ProjectRef]) -> list[ProjectModel]:
        projects: list[ProjectModel] = []
        for ref in refs:
            model = session.get(ProjectModel, ref.id) if ref.id is not None else None
            if model is None:
                model = session.scalar(
                    select(ProjectModel).where(func.lower(ProjectModel.name) == ref.name.lower())
                )
            if model is None:
                raise PersistenceError(f"Project '{ref.name}' does not exist")
            if model not in projects:
                projects.append(model)
        return projects


class ProjectRepository(_SessionMixin):
    def list_projects(self) -> list[ProjectRef]:
        with self._session() as session:
            stmt = select(ProjectModel).order_by(ProjectModel.name.asc())
            return [_to_project(project) for project in session.scalars(stmt)]

    def find_project_by_name(self, name: str) -> Optional[ProjectRef]:
        with self._session() as session:
            stmt = (
                select(ProjectModel)
                .where(func.lower(ProjectModel.name) == name.strip().lower())
                .limit(1)
            )
            project = session.scalar(stmt)
            return _to_project(project) if project else None

    def create_project(self, name: str) -> ProjectRef:
        with self._session() as session:
            project = ProjectModel(name=name.strip())
            session.add(project)
            session.commit()
            session.refresh(project)
            logger.info("Created project %s (%s)", project.name, project.id)
            return _to_project(project)
