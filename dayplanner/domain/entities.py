from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Optional

from .dates import date_key, to_date
from .enums import ChatRole, NotificationLevel


@dataclass(frozen=True)
class ProjectRef:
    name: str
    id: int | None = None

    def matches(self, other: ProjectRef) -> bool:
        if self.id is not None and other.id is not None:
            return self.id == other.id
        return self.name.casefold() == other.name.casefold()


@dataclass(frozen=True)
class TaskEntity:
    """A planned task. ``id`` is ``None`` for drafts that are not stored yet."""

    id: int | None
    title: str
    date: date
    description: str = ""
    notes: Optional[str] = None
    completed: bool = False
    estimated_time: int = 0
    order: int = 0
    user_id: str | None = None
    projects: tuple[ProjectRef, ...] = ()

    @property
    def key(self) -> str:
        return date_key(self.date)

    def has_project(self, project_id: int) -> bool:
        return any(project.id == project_id for project in self.projects)

    def with_changes(self, **changes) -> TaskEntity:
        if "date" in changes and changes["date"] is not None:
            changes["date"] = to_date(changes["date"])
        if "projects" in changes and changes["projects"] is not None:
            changes["projects"] = tuple(changes["projects"])
        return replace(self, **changes)


TaskDraft = TaskEntity


@dataclass(frozen=True)
class TaskPatch:
    """Partial task as proposed by the assistant; ``None`` means "keep"."""

    id: int
    title: str | None = None
    description: str | None = None
    notes: str | None = None
    date: Optional[date] = None
    completed: bool | None = None
    estimated_time: int | None = None
    order: int | None = None
    projects: tuple[ProjectRef, ...] | None = None

    def apply_to(self, task: TaskEntity) -> TaskEntity:
        changes = {
            name: getattr(self, name)
            for name in (
                "title",
                "description",
                "notes",
                "date",
                "completed",
                "estimated_time",
                "order",
                "projects",
            )
            if getattr(self, name) is not None
        }
        return task.with_changes(**changes)


@dataclass(frozen=True)
class TaskOrderUpdate:
    id: int
    order: int
    date: str | None = None

    def to_dict(self) -> dict:
        data = {"id": self.id, "order": self.order}
        if self.date is not None:
            data["date"] = self.date
        return data


@dataclass(frozen=True)
class ChatMessage:
    role: ChatRole
    content: str
    timestamp: datetime = field(default_factory=datetime.now)
    suggestions: object | None = None


@dataclass(frozen=True)
class Notification:
    level: NotificationLevel
    message: str
    created_at: datetime = field(default_factory=datetime.now)
