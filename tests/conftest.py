from __future__ import annotations

import os

# Settings are read at import time; point them at an in-memory database.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["APP_ENV"] = "test"

from dataclasses import dataclass  # noqa: E402
from datetime import datetime, timedelta  # noqa: E402

import pytest  # noqa: E402

from ops360.infra import models  # noqa: E402,F401
from ops360.infra.db import Base, engine  # noqa: E402
from ops360.infra.repository import (  # noqa: E402
    ProjectRepository,
    TaskRepository,
    TeamRepository,
    TransitionRepository,
    UserRepository,
)
from ops360.services.lifecycle import TaskLifecycleScheduler  # noqa: E402
from ops360.services.notifications import NotificationDispatcher  # noqa: E402
from ops360.services.project_service import ProjectService  # noqa: E402
from ops360.services.task_service import TaskService  # noqa: E402
from ops360.services.team_resolver import TeamLocationResolver  # noqa: E402
from ops360.services.timers import TimerService  # noqa: E402


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> datetime:
        self.now += delta
        return self.now


class RecordingSink:
    def __init__(self) -> None:
        self.messages: list[tuple[str, str, str]] = []

    def send(self, address: str, subject: str, body: str) -> bool:
        self.messages.append((address, subject, body))
        return True

    def addresses(self) -> list[str]:
        return [address for address, _, _ in self.messages]

    def subjects(self) -> set[str]:
        return {subject for _, subject, _ in self.messages}


@dataclass
class Env:
    clock: FakeClock
    sink: RecordingSink
    timers: TimerService
    scheduler: TaskLifecycleScheduler
    projects: ProjectService
    tasks: TaskService
    task_repo: TaskRepository
    project_repo: ProjectRepository
    transition_repo: TransitionRepository
    team_repo: TeamRepository
    user_repo: UserRepository


@pytest.fixture
def db():
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture
def clock() -> FakeClock:
    # A Wednesday.
    return FakeClock(datetime(2026, 1, 7, 9, 0))


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def env(db, clock: FakeClock, sink: RecordingSink) -> Env:
    task_repo = TaskRepository()
    project_repo = ProjectRepository()
    transition_repo = TransitionRepository()
    team_repo = TeamRepository()
    user_repo = UserRepository()

    notifier = NotificationDispatcher(user_repo, sink)
    timers = TimerService(clock=clock)
    scheduler = TaskLifecycleScheduler(timers, task_repo, transition_repo, notifier, clock=clock)
    projects = ProjectService(
        project_repo,
        task_repo,
        TeamLocationResolver(team_repo),
        user_repo,
        scheduler,
        clock=clock,
    )
    tasks = TaskService(task_repo, project_repo, scheduler, notifier, clock=clock)
    return Env(
        clock=clock,
        sink=sink,
        timers=timers,
        scheduler=scheduler,
        projects=projects,
        tasks=tasks,
        task_repo=task_repo,
        project_repo=project_repo,
        transition_repo=transition_repo,
        team_repo=team_repo,
        user_repo=user_repo,
    )
