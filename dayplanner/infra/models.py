from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import relationship

from .db import Base


def utcnow() -> datetime:
    return datetime.utcnow()


tasks_projects = Table(
    "tasks_projects",
    Base.metadata,
    Column("task_id", Integer, ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True),
    Column("project_id", Integer, ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True),
)


class ProjectModel(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True)
    name = Column(String(120), nullable=False, unique=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class TaskModel(Base):
    __tablename__ = "tasks"
    __table_args__ = (Index("ix_tasks_user_date", "user_id", "date"),)

    id = Column(Integer, primary_key=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    notes = Column(Text, nullable=True)
    date = Column(Date, nullable=False)
    completed = Column(Boolean, nullable=False, default=False)
    estimated_time = Column(Integer, nullable=False, default=0)
    order = Column(Integer, nullable=False, default=0)
    user_id = Column(String(64), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    projects = relationship(
        ProjectModel,
        secondary=tasks_projects,
        lazy="selectin",
        order_by=ProjectModel.name,
        passive_deletes=True,
    )
