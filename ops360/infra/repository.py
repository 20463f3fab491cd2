from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import SQLAlchemyError

from ops360.domain.entities import (
    CommentEntity,
    ProjectDraft,
    ProjectEntity,
    RecurrenceRule,
    ScheduledTransition,
    TaskDraft,
    TaskEntity,
    TeamEntity,
    UserEntity,
)
from ops360.domain.enums import ProjectStatus, TaskStatus, TransitionKind
from ops360.domain.errors import DependencyFailure
from ops360.domain.filters import TaskFilters

from .db import SessionLocal
from .models import (
    CommentModel,
    ProjectModel,
    ScheduledTransitionModel,
    TaskAssigneeModel,
    TaskModel,
    TeamModel,
    UserModel,
    utcnow,
)

logger = logging.getLogger(__name__)


def _to_task_entity(model: TaskModel) -> TaskEntity:
    return TaskEntity(
        id=model.id,
        title=model.title,
        description=model.description,
        status=TaskStatus(model.status),
        assignees=tuple(assignee.user_id for assignee in model.assignees),
        creator_id=model.creator_id,
        followers=tuple(model.followers or ()),
        location_id=model.location_id,
        team_id=model.team_id,
        project_id=model.project_id,
        date_start=model.date_start,
        due_date=model.due_date,
        created_at=model.created_at,
        updated_at=model.updated_at,
        completed_at=model.completed_at,
        completed_by=model.completed_by,
        comments=tuple(
            CommentEntity(
                id=comment.id,
                author_id=comment.author_id,
                text=comment.text,
                created_at=comment.created_at,
            )
            for comment in model.comments
        ),
    )


def _to_project_entity(model: ProjectModel, child_ids: Iterable[int]) -> ProjectEntity:
    return ProjectEntity(
        id=model.id,
        title=model.title,
        instruction=model.instruction,
        status=ProjectStatus(model.status),
        team_id=model.team_id,
        assigned_role_id=model.assigned_role_id,
        creator_id=model.creator_id,
        followers=tuple(model.followers or ()),
        locations_at=tuple(model.locations_at or ()),
        recurrence=RecurrenceRule.from_dict(model.recurrence),
        tasks=tuple(model.task_ids or ()),
        no_of_tasks=model.no_of_tasks,
        parent_project_id=model.parent_project_id,
        child_project_ids=tuple(child_ids),
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def _apply_filters(stmt, filters: TaskFilters) -> object:
    if filters.assignee is not None:
        stmt = stmt.where(
            TaskModel.id.in_(
                select(TaskAssigneeModel.task_id).where(TaskAssigneeModel.user_id == filters.assignee)
            )
        )
    if filters.location is not None:
        stmt = stmt.where(TaskModel.location_id == filters.location)
    if filters.team is not None:
        stmt = stmt.where(TaskModel.team_id == filters.team)
    if filters.project is not None:
        # A parent project's tasks live on its child projects.
        child_ids = select(ProjectModel.id).where(ProjectModel.parent_project_id == filters.project)
        stmt = stmt.where(
            or_(TaskModel.project_id == filters.project, TaskModel.project_id.in_(child_ids))
        )
    if filters.status is not None:
        stmt = stmt.where(TaskModel.status == TaskStatus(filters.status).value)
    return stmt


def _assignee_rows(user_ids: Iterable[int]) -> list[TaskAssigneeModel]:
    rows = []
    for position, user_id in enumerate(dict.fromkeys(user_ids)):
        rows.append(TaskAssigneeModel(user_id=user_id, position=position))
    return rows


def _new_task_model(draft: TaskDraft, project_id: int | None) -> TaskModel:
    return TaskModel(
        title=draft.title,
        description=draft.description,
        status=TaskStatus.ACTIVE.value,
        creator_id=draft.creator_id,
        followers=list(draft.followers),
        location_id=draft.location_id,
        team_id=draft.team_id,
        project_id=project_id,
        date_start=draft.date_start,
        due_date=draft.due_date,
        assignees=_assignee_rows(draft.assignees),
    )


def _new_project_model(draft: ProjectDraft, parent_id: int | None = None) -> ProjectModel:
    return ProjectModel(
        title=draft.title,
        instruction=draft.instruction,
        status=ProjectStatus.ACTIVE.value,
        team_id=draft.team_id,
        assigned_role_id=draft.assigned_role_id,
        creator_id=draft.creator_id,
        followers=list(draft.followers),
        locations_at=list(draft.locations_at),
        recurrence=draft.recurrence.to_dict(),
        task_ids=[],
        no_of_tasks=0,
        parent_project_id=parent_id,
    )


def _set_project_tasks(project: ProjectModel, task_ids: Iterable[int]) -> None:
    # JSON columns only track reassignment, never in-place mutation.
    project.task_ids = list(task_ids)
    project.no_of_tasks = len(project.task_ids)


class TaskRepository:
    def __init__(self, session_factory=SessionLocal) -> None:
        self._session_factory = session_factory

    def list_tasks(self, filters: TaskFilters) -> list[TaskEntity]:
        with self._session_factory() as session:
            stmt = select(TaskModel)
            stmt = _apply_filters(stmt, filters)
            stmt = stmt.order_by(TaskModel.due_date.asc(), TaskModel.id.asc())
            return [_to_task_entity(task) for task in session.scalars(stmt)]

    def get_task(self, task_id: int) -> Optional[TaskEntity]:
        with self._session_factory() as session:
            task = session.get(TaskModel, task_id)
            return _to_task_entity(task) if task else None

    def create_task(self, draft: TaskDraft, project_id: int | None = None) -> TaskEntity:
        with self._session_factory() as session:
            task = _new_task_model(draft, project_id)
            session.add(task)
            session.commit()
            session.refresh(task)
            return _to_task_entity(task)

    def update_task(self, task_id: int, data: dict) -> Optional[TaskEntity]:
        with self._session_factory() as session:
            task = session.get(TaskModel, task_id)
            if not task:
                return None

            data = dict(data)
            if "assignees" in data:
                task.assignees = _assignee_rows(data.pop("assignees"))
            if "followers" in data:
                data["followers"] = list(data["followers"])
            if "status" in data:
                data["status"] = TaskStatus(data["status"]).value

            for key, value in data.items():
                setattr(task, key, value)
            session.commit()
            session.refresh(task)
            return _to_task_entity(task)

    def transition_status(
        self,
        task_id: int,
        from_statuses: Iterable[TaskStatus],
        to_status: TaskStatus,
        **fields,
    ) -> Optional[TaskEntity]:
        """Move a task to ``to_status`` only if it is currently in ``from_statuses``.

        The check and the write are a single UPDATE, so a concurrent
        transition that got there first makes this return ``None``.
        """
        allowed = [TaskStatus(status).value for status in from_statuses]
        with self._session_factory() as session:
            result = session.execute(
                update(TaskModel)
                .where(TaskModel.id == task_id, TaskModel.status.in_(allowed))
                .values(status=to_status.value, updated_at=utcnow(), **fields)
                .execution_options(synchronize_session=False)
            )
            session.commit()
            if result.rowcount == 0:
                return None
            task = session.get(TaskModel, task_id)
            return _to_task_entity(task) if task else None

    def add_comment(self, task_id: int, author_id: int, text: str, created_at: datetime) -> Optional[TaskEntity]:
        with self._session_factory() as session:
            task = session.get(TaskModel, task_id)
            if not task:
                return None
            session.add(CommentModel(task_id=task_id, author_id=author_id, text=text, created_at=created_at))
            task.updated_at = utcnow()
            session.commit()
            session.refresh(task)
            return _to_task_entity(task)

    def list_open_tasks(self) -> list[TaskEntity]:
        with self._session_factory() as session:
            stmt = (
                select(TaskModel)
                .where(TaskModel.status.in_([TaskStatus.ACTIVE.value, TaskStatus.IN_PROGRESS.value]))
                .order_by(TaskModel.due_date.asc())
            )
            return [_to_task_entity(task) for task in session.scalars(stmt)]


class ProjectRepository:
    def __init__(self, session_factory=SessionLocal) -> None:
        self._session_factory = session_factory

    def get_project(self, project_id: int) -> Optional[ProjectEntity]:
        with self._session_factory() as session:
            project = session.get(ProjectModel, project_id)
            if not project:
                return None
            return _to_project_entity(project, self._child_ids(session, project.id))

    def list_projects(self, team_id: int | None = None, include_deleted: bool = False) -> list[ProjectEntity]:
        with self._session_factory() as session:
            stmt = select(ProjectModel)
            if team_id is not None:
                stmt = stmt.where(ProjectModel.team_id == team_id)
            if not include_deleted:
                stmt = stmt.where(ProjectModel.status != ProjectStatus.DELETED.value)
            stmt = stmt.order_by(ProjectModel.created_at.desc(), ProjectModel.id.desc())
            return [
                _to_project_entity(project, self._child_ids(session, project.id))
                for project in session.scalars(stmt)
            ]

    def create_project_group(
        self,
        root: ProjectDraft,
        children: list[ProjectDraft],
    ) -> tuple[ProjectEntity, list[ProjectEntity]]:
        """Write a root project, its child projects and all their tasks at once.

        Nothing is visible until the single commit at the end; any failure
        rolls the whole group back when the session closes.
        """
        with self._session_factory() as session:
            parent = _new_project_model(root)
            session.add(parent)
            session.flush()

            child_models: list[ProjectModel] = []
            if children:
                all_task_ids: list[int] = []
                all_locations: list[int] = []
                for draft in children:
                    child = _new_project_model(draft, parent_id=parent.id)
                    session.add(child)
                    session.flush()
                    task_models = [_new_task_model(task, child.id) for task in draft.tasks]
                    session.add_all(task_models)
                    session.flush()
                    _set_project_tasks(child, [task.id for task in task_models])
                    all_task_ids.extend(child.task_ids)
                    all_locations.extend(draft.locations_at)
                    child_models.append(child)
                _set_project_tasks(parent, all_task_ids)
                parent.locations_at = list(dict.fromkeys(all_locations))
            else:
                task_models = [_new_task_model(task, parent.id) for task in root.tasks]
                session.add_all(task_models)
                session.flush()
                _set_project_tasks(parent, [task.id for task in task_models])

            session.commit()
            child_ids = [child.id for child in child_models]
            return (
                _to_project_entity(parent, child_ids),
                [_to_project_entity(child, ()) for child in child_models],
            )

    def attach_task(self, project_id: int, task_id: int) -> Optional[ProjectEntity]:
        """Append a task to a project and to its parent, if any."""
        with self._session_factory() as session:
            project = session.get(ProjectModel, project_id)
            if not project:
                return None
            current = project
            while current is not None:
                if task_id not in (current.task_ids or []):
                    _set_project_tasks(current, [*(current.task_ids or []), task_id])
                current = session.get(ProjectModel, current.parent_project_id) if current.parent_project_id else None
            session.commit()
            return _to_project_entity(project, self._child_ids(session, project.id))

    def detach_task(self, project_id: int, task_id: int) -> None:
        with self._session_factory() as session:
            current = session.get(ProjectModel, project_id)
            while current is not None:
                _set_project_tasks(current, [tid for tid in current.task_ids or [] if tid != task_id])
                current = session.get(ProjectModel, current.parent_project_id) if current.parent_project_id else None
            session.commit()

    def set_status(self, project_ids: Iterable[int], status: ProjectStatus) -> None:
        ids = list(project_ids)
        if not ids:
            return
        with self._session_factory() as session:
            session.execute(
                update(ProjectModel)
                .where(ProjectModel.id.in_(ids))
                .values(status=status.value, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            session.commit()

    @staticmethod
    def _child_ids(session, project_id: int) -> list[int]:
        return list(
            session.scalars(
                select(ProjectModel.id)
                .where(ProjectModel.parent_project_id == project_id)
                .order_by(ProjectModel.id.asc())
            )
        )


class TransitionRepository:
    """Durable copy of the pending lifecycle timers."""

    def __init__(self, session_factory=SessionLocal) -> None:
        self._session_factory = session_factory

    def replace_for_task(self, task_id: int, transitions: Iterable[ScheduledTransition]) -> None:
        with self._session_factory() as session:
            session.execute(delete(ScheduledTransitionModel).where(ScheduledTransitionModel.task_id == task_id))
            session.add_all(
                ScheduledTransitionModel(task_id=item.task_id, kind=item.kind.value, fire_at=item.fire_at)
                for item in transitions
            )
            session.commit()

    def delete(self, task_id: int, kind: TransitionKind, fire_at: datetime | None = None) -> None:
        """Drop a stored transition; with ``fire_at`` only that exact plan's row."""
        with self._session_factory() as session:
            stmt = delete(ScheduledTransitionModel).where(
                ScheduledTransitionModel.task_id == task_id,
                ScheduledTransitionModel.kind == kind.value,
            )
            if fire_at is not None:
                stmt = stmt.where(ScheduledTransitionModel.fire_at == fire_at)
            session.execute(stmt)
            session.commit()

    def delete_for_task(self, task_id: int) -> None:
        with self._session_factory() as session:
            session.execute(delete(ScheduledTransitionModel).where(ScheduledTransitionModel.task_id == task_id))
            session.commit()

    def list_pending(self) -> list[ScheduledTransition]:
        with self._session_factory() as session:
            stmt = select(ScheduledTransitionModel).order_by(
                ScheduledTransitionModel.fire_at.asc(), ScheduledTransitionModel.id.asc()
            )
            return [
                ScheduledTransition(task_id=row.task_id, kind=TransitionKind(row.kind), fire_at=row.fire_at)
                for row in session.scalars(stmt)
            ]


class TeamRepository:
    def __init__(self, session_factory=SessionLocal) -> None:
        self._session_factory = session_factory

    def get(self, team_id: int) -> Optional[TeamEntity]:
        try:
            with self._session_factory() as session:
                team = session.get(TeamModel, team_id)
                return self._to_entity(team) if team else None
        except SQLAlchemyError as exc:
            raise DependencyFailure(f"Team directory lookup failed for team {team_id}") from exc

    def find_children(self, team_id: int) -> list[TeamEntity]:
        try:
            with self._session_factory() as session:
                stmt = select(TeamModel).where(TeamModel.parent_id == team_id).order_by(TeamModel.id.asc())
                return [self._to_entity(team) for team in session.scalars(stmt)]
        except SQLAlchemyError as exc:
            raise DependencyFailure(f"Team directory lookup failed for children of {team_id}") from exc

    def create_team(self, name: str, parent_id: int | None = None, location_ids: Iterable[int] = ()) -> TeamEntity:
        with self._session_factory() as session:
            team = TeamModel(name=name, parent_id=parent_id, location_ids=list(location_ids))
            session.add(team)
            session.commit()
            session.refresh(team)
            return self._to_entity(team)

    @staticmethod
    def _to_entity(model: TeamModel) -> TeamEntity:
        return TeamEntity(
            id=model.id,
            name=model.name,
            parent_id=model.parent_id,
            location_ids=tuple(model.location_ids or ()),
        )


class UserRepository:
    def __init__(self, session_factory=SessionLocal) -> None:
        self._session_factory = session_factory

    def find_by_role(self, role_id: int) -> list[int]:
        try:
            with self._session_factory() as session:
                stmt = select(UserModel.id).where(UserModel.role_id == role_id).order_by(UserModel.id.asc())
                return list(session.scalars(stmt))
        except SQLAlchemyError as exc:
            raise DependencyFailure(f"User directory lookup failed for role {role_id}") from exc

    def find_by_ids(self, user_ids: Iterable[int]) -> list[UserEntity]:
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return []
        try:
            with self._session_factory() as session:
                stmt = select(UserModel).where(UserModel.id.in_(ids))
                return [self._to_entity(user) for user in session.scalars(stmt)]
        except SQLAlchemyError as exc:
            raise DependencyFailure("User directory lookup failed") from exc

    def create_user(self, email: str, role_id: int | None = None, firstname: str = "", lastname: str = "") -> UserEntity:
        with self._session_factory() as session:
            user = UserModel(email=email, role_id=role_id, firstname=firstname, lastname=lastname)
            session.add(user)
            session.commit()
            session.refresh(user)
            return self._to_entity(user)

    @staticmethod
    def _to_entity(model: UserModel) -> UserEntity:
        return UserEntity(
            id=model.id,
            email=model.email,
            firstname=model.firstname,
            lastname=model.lastname,
            role_id=model.role_id,
        )
