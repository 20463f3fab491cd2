from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from .db import Base


def utcnow() -> datetime:
    return datetime.utcnow()


class TeamModel(Base):
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False, unique=True)
    parent_id = Column(Integer, ForeignKey("teams.id"), nullable=True, index=True)
    location_ids = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    email = Column(String(320), nullable=False, unique=True)
    firstname = Column(String(100), nullable=False, default="")
    lastname = Column(String(100), nullable=False, default="")
    role_id = Column(Integer, nullable=True, index=True)


class ProjectModel(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True)
    title = Column(String(300), nullable=False)
    instruction = Column(Text, nullable=False, default="")
    status = Column(String(20), nullable=False, default="Active", index=True)
    team_id = Column(Integer, nullable=False, index=True)
    assigned_role_id = Column(Integer, nullable=False)
    creator_id = Column(Integer, nullable=False)
    followers = Column(JSON, nullable=False, default=list)
    locations_at = Column(JSON, nullable=False, default=list)
    recurrence = Column(JSON, nullable=False)
    task_ids = Column(JSON, nullable=False, default=list)
    no_of_tasks = Column(Integer, nullable=False, default=0)
    parent_project_id = Column(Integer, ForeignKey("projects.id"), nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class TaskModel(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True)
    title = Column(String(300), nullable=False)
    description = Column(Text, nullable=False, default="")
    status = Column(String(20), nullable=False, default="Active", index=True)
    creator_id = Column(Integer, nullable=False)
    followers = Column(JSON, nullable=False, default=list)
    location_id = Column(Integer, nullable=True, index=True)
    team_id = Column(Integer, nullable=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True, index=True)
    date_start = Column(DateTime, nullable=False)
    due_date = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    completed_at = Column(DateTime, nullable=True)
    completed_by = Column(Integer, nullable=True)

    assignees = relationship(
        "TaskAssigneeModel",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="TaskAssigneeModel.position",
    )
    comments = relationship(
        "CommentModel",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="CommentModel.id",
    )


class TaskAssigneeModel(Base):
    __tablename__ = "task_assignees"

    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(Integer, primary_key=True, index=True)
    position = Column(Integer, nullable=False, default=0)


class CommentModel(Base):
    __tablename__ = "task_comments"

    id = Column(Integer, primary_key=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(Integer, nullable=False)
    text = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class ScheduledTransitionModel(Base):
    __tablename__ = "scheduled_transitions"
    __table_args__ = (UniqueConstraint("task_id", "kind", name="uq_scheduled_transitions_task_kind"),)

    id = Column(Integer, primary_key=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    kind = Column(String(20), nullable=False)
    fire_at = Column(DateTime, nullable=False, index=True)
