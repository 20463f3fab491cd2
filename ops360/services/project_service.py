from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, time

from ops360.domain.entities import ProjectDraft, ProjectEntity, RecurrenceRule, TaskDraft, TeamEntity
from ops360.domain.enums import ProjectStatus, TaskStatus
from ops360.domain.errors import NotFoundError, ValidationError
from ops360.infra.repository import ProjectRepository, TaskRepository

from .directory import UserDirectory
from .lifecycle import TaskLifecycleScheduler
from .recurrence import DEFAULT_DUE_TIME, expand, validate_rule
from .team_resolver import TeamLocationResolver, TeamScope

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MaterializedProjects:
    parent: ProjectEntity
    children: tuple[ProjectEntity, ...]

    @property
    def task_ids(self) -> tuple[int, ...]:
        return self.parent.tasks


class ProjectService:
    def __init__(
        self,
        projects: ProjectRepository,
        tasks: TaskRepository,
        resolver: TeamLocationResolver,
        users: UserDirectory,
        scheduler: TaskLifecycleScheduler,
        clock: Callable[[], datetime] = datetime.now,
        due_time: time = DEFAULT_DUE_TIME,
    ) -> None:
        self._projects = projects
        self._tasks = tasks
        self._resolver = resolver
        self._users = users
        self._scheduler = scheduler
        self._clock = clock
        self._due_time = due_time

    def create_recurring_project(
        self,
        title: str,
        instruction: str,
        team_id: int,
        assigned_role_id: int,
        recurrence: RecurrenceRule | dict,
        creator_id: int,
        followers: Iterable[int] = (),
        requested_location_ids: Iterable[int] | None = None,
    ) -> MaterializedProjects:
        """Create the project group for a team and materialize its tasks.

        A team without child teams gets a single project. Otherwise each
        child team gets its own project and a parent project aggregates
        their tasks and locations. Everything is written in one transaction
        before any lifecycle timer is registered.
        """
        if isinstance(recurrence, dict):
            recurrence = RecurrenceRule.from_dict(recurrence)
        validate_rule(recurrence)
        if not title or not title.strip():
            raise ValidationError("Project title is required")

        scope = self._resolver.resolve(team_id, requested_location_ids)
        assignees = tuple(self._users.find_by_role(assigned_role_id))
        if not assignees:
            raise ValidationError(f"No users hold role {assigned_role_id}")

        followers = tuple(dict.fromkeys(followers))
        base = dict(
            instruction=instruction,
            assigned_role_id=assigned_role_id,
            creator_id=creator_id,
            followers=followers,
            recurrence=recurrence,
        )

        if not scope.children:
            root = ProjectDraft(
                title=title,
                team_id=scope.team.id,
                locations_at=scope.locations_for(scope.team),
                tasks=self._task_drafts(title, instruction, scope.team, scope, recurrence, assignees, creator_id, followers),
                **base,
            )
            children: list[ProjectDraft] = []
        else:
            children = [
                ProjectDraft(
                    title=f"{title} - {child.name}",
                    team_id=child.id,
                    locations_at=scope.locations_for(child),
                    tasks=self._task_drafts(title, instruction, child, scope, recurrence, assignees, creator_id, followers),
                    **base,
                )
                for child in scope.children
            ]
            root = ProjectDraft(
                title=f"{title} - Parent Project",
                team_id=scope.team.id,
                locations_at=(),
                **base,
            )

        parent, child_projects = self._projects.create_project_group(root, children)
        logger.info(
            "Created project %s (%d child project(s), %d task(s)) for team %s",
            parent.id,
            len(child_projects),
            parent.no_of_tasks,
            team_id,
        )

        for task_id in parent.tasks:
            task = self._tasks.get_task(task_id)
            if task is not None:
                self._scheduler.schedule(task)

        return MaterializedProjects(parent=parent, children=tuple(child_projects))

    def get_project(self, project_id: int) -> ProjectEntity:
        project = self._projects.get_project(project_id)
        if project is None:
            raise NotFoundError("Project", project_id)
        return project

    def list_projects(self, team_id: int | None = None) -> list[ProjectEntity]:
        return self._projects.list_projects(team_id)

    def delete_project(self, project_id: int) -> ProjectEntity:
        """Soft-delete a project, its child projects and all of their tasks."""
        project = self.get_project(project_id)
        project_ids = [project.id, *project.child_project_ids]
        for task_id in project.tasks:
            self._scheduler.cancel(task_id)
            self._tasks.update_task(task_id, {"status": TaskStatus.DELETED})
        self._projects.set_status(project_ids, ProjectStatus.DELETED)
        logger.info("Deleted project %s with %d task(s)", project.id, len(project.tasks))
        return self.get_project(project_id)

    def _task_drafts(
        self,
        title: str,
        instruction: str,
        team: TeamEntity,
        scope: TeamScope,
        recurrence: RecurrenceRule,
        assignees: tuple[int, ...],
        creator_id: int,
        followers: tuple[int, ...],
    ) -> list[TaskDraft]:
        drafts: list[TaskDraft] = []
        for location_id in scope.locations_for(team):
            # Each location is anchored at the moment its tasks are built.
            for occurrence in expand(recurrence, self._clock(), self._due_time):
                drafts.append(
                    TaskDraft(
                        title=f"{title} - Task for {team.name}",
                        description=instruction or f"Task for project: {title}",
                        assignees=assignees,
                        creator_id=creator_id,
                        followers=followers,
                        location_id=location_id,
                        team_id=team.id,
                        date_start=occurrence.start,
                        due_date=occurrence.due,
                    )
                )
        return drafts
