from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime

from ops360.domain.entities import TaskDraft, TaskEntity
from ops360.domain.enums import NotificationKind, TaskStatus
from ops360.domain.errors import NotFoundError, ValidationError
from ops360.domain.filters import TaskFilters
from ops360.infra.repository import ProjectRepository, TaskRepository

from .lifecycle import TaskLifecycleScheduler
from .notifications import NotificationDispatcher

logger = logging.getLogger(__name__)

COMPLETABLE_STATUSES = (TaskStatus.ACTIVE, TaskStatus.IN_PROGRESS, TaskStatus.MISSED)
EDITABLE_FIELDS = frozenset(
    {"title", "description", "assignees", "followers", "location_id", "team_id", "date_start", "due_date"}
)


class TaskService:
    def __init__(
        self,
        repo: TaskRepository,
        projects: ProjectRepository,
        scheduler: TaskLifecycleScheduler,
        notifier: NotificationDispatcher,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._repo = repo
        self._projects = projects
        self._scheduler = scheduler
        self._notifier = notifier
        self._clock = clock

    def list_tasks(self, filters: TaskFilters | None = None) -> list[TaskEntity]:
        return self._repo.list_tasks(filters or TaskFilters())

    def get_task(self, task_id: int) -> TaskEntity:
        task = self._repo.get_task(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    def create_task(self, data: dict, creator_id: int) -> TaskEntity:
        """Create a standalone task, optionally attached to an existing project."""
        normalized = self._normalize_data(data)
        assignees = tuple(dict.fromkeys(normalized.get("assignees") or ()))
        if not assignees:
            raise ValidationError("A task needs at least one assignee")
        if not normalized.get("title"):
            raise ValidationError("Task title is required")
        due_date = normalized.get("due_date")
        if due_date is None:
            raise ValidationError("Task due_date is required")
        date_start = normalized.get("date_start") or self._clock()
        if date_start > due_date:
            raise ValidationError("Task start must not be after its due date")

        project_id = normalized.get("project_id")
        if project_id is not None and self._projects.get_project(project_id) is None:
            raise NotFoundError("Project", project_id)

        task = self._repo.create_task(
            TaskDraft(
                title=normalized["title"],
                description=normalized.get("description", ""),
                assignees=assignees,
                creator_id=creator_id,
                followers=tuple(dict.fromkeys(normalized.get("followers") or ())),
                location_id=normalized.get("location_id"),
                team_id=normalized.get("team_id"),
                date_start=date_start,
                due_date=due_date,
            ),
            project_id=project_id,
        )
        if project_id is not None:
            self._projects.attach_task(project_id, task.id)
        self._scheduler.schedule(task)
        logger.info("Created task %s", task.id)
        return task

    def update_task(self, task_id: int, data: dict) -> TaskEntity:
        """Edit task fields; new dates replace the pending lifecycle timers."""
        current = self.get_task(task_id)
        normalized = self._normalize_data(data)
        unknown = set(normalized) - EDITABLE_FIELDS - {"project_id"}
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
        if "assignees" in normalized and not normalized["assignees"]:
            raise ValidationError("A task needs at least one assignee")

        date_start = normalized.get("date_start", current.date_start)
        due_date = normalized.get("due_date", current.due_date)
        if date_start > due_date:
            raise ValidationError("Task start must not be after its due date")

        new_project = normalized.get("project_id", current.project_id)
        if new_project != current.project_id and new_project is not None:
            if self._projects.get_project(new_project) is None:
                raise NotFoundError("Project", new_project)

        task = self._repo.update_task(task_id, normalized)
        if task is None:
            raise NotFoundError("Task", task_id)

        if new_project != current.project_id:
            if current.project_id is not None:
                self._projects.detach_task(current.project_id, task_id)
            if new_project is not None:
                self._projects.attach_task(new_project, task_id)

        if "date_start" in normalized or "due_date" in normalized:
            self._scheduler.schedule(task)
        return task

    def start_task(self, task_id: int) -> TaskEntity:
        self.get_task(task_id)
        task = self._repo.transition_status(task_id, (TaskStatus.ACTIVE,), TaskStatus.IN_PROGRESS)
        if task is None:
            raise ValidationError(f"Task {task_id} is not active")
        return task

    def complete_task(self, task_id: int, completed_by: int | None = None) -> TaskEntity:
        current = self.get_task(task_id)
        if current.status == TaskStatus.COMPLETED:
            return current
        if current.status == TaskStatus.DELETED:
            raise ValidationError(f"Task {task_id} has been deleted")

        task = self._repo.transition_status(
            task_id,
            COMPLETABLE_STATUSES,
            TaskStatus.COMPLETED,
            completed_at=self._clock(),
            completed_by=completed_by,
        )
        self._scheduler.cancel(task_id)
        if task is None:
            # Lost a race with another completion or deletion.
            return self.get_task(task_id)

        logger.info("Task %s completed", task_id)
        self._notifier.notify(task, NotificationKind.COMPLETED)
        return task

    def delete_task(self, task_id: int) -> TaskEntity:
        self.get_task(task_id)
        self._scheduler.cancel(task_id)
        task = self._repo.update_task(task_id, {"status": TaskStatus.DELETED})
        if task is None:
            raise NotFoundError("Task", task_id)
        logger.info("Task %s marked as deleted", task_id)
        return task

    def add_comment(
        self,
        task_id: int,
        author_id: int,
        text: str,
        notify_extra: Iterable[int] = (),
    ) -> TaskEntity:
        if not text or not text.strip():
            raise ValidationError("Comment text is required")
        task = self._repo.add_comment(task_id, author_id, text.strip(), self._clock())
        if task is None:
            raise NotFoundError("Task", task_id)
        self._notifier.notify(
            task,
            NotificationKind.COMMENT_ADDED,
            extra_user_ids=notify_extra,
            comment=task.comments[-1],
        )
        return task

    def _normalize_data(self, data: dict) -> dict:
        normalized = dict(data)
        for key in ("assignees", "followers"):
            if key in normalized and normalized[key] is not None:
                normalized[key] = tuple(normalized[key])
        if "status" in normalized:
            raise ValidationError("Status changes go through start/complete/delete")
        return normalized
