from __future__ import annotations

import logging
import signal
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import timedelta

from ops360.config import SETTINGS, Settings
from ops360.infra.db import init_db
from ops360.infra.logging import setup_logging
from ops360.infra.mailer import build_sink
from ops360.infra.repository import (
    ProjectRepository,
    TaskRepository,
    TeamRepository,
    TransitionRepository,
    UserRepository,
)
from ops360.services.lifecycle import TaskLifecycleScheduler
from ops360.services.notifications import NotificationDispatcher
from ops360.services.project_service import ProjectService
from ops360.services.task_service import TaskService
from ops360.services.team_resolver import TeamLocationResolver
from ops360.services.timers import TimerService

logger = logging.getLogger(__name__)


@dataclass
class Services:
    timers: TimerService
    scheduler: TaskLifecycleScheduler
    projects: ProjectService
    tasks: TaskService
    notify_executor: ThreadPoolExecutor

    def shutdown(self) -> None:
        self.timers.stop()
        self.notify_executor.shutdown(wait=True)


def build_services(settings: Settings = SETTINGS) -> Services:
    """Wire repositories, directories and services (composition root)."""
    task_repo = TaskRepository()
    project_repo = ProjectRepository()
    users = UserRepository()

    notify_executor = ThreadPoolExecutor(max_workers=settings.notify_workers, thread_name_prefix="ops360-notify")
    notifier = NotificationDispatcher(users, build_sink(settings), executor=notify_executor)
    timers = TimerService(max_workers=settings.timer_workers, poll_seconds=settings.timer_poll_seconds)
    scheduler = TaskLifecycleScheduler(
        timers,
        task_repo,
        TransitionRepository(),
        notifier,
        reminder_lead=timedelta(hours=settings.reminder_lead_hours),
    )
    projects = ProjectService(
        project_repo,
        task_repo,
        TeamLocationResolver(TeamRepository()),
        users,
        scheduler,
        due_time=settings.due_time,
    )
    tasks = TaskService(task_repo, project_repo, scheduler, notifier)
    return Services(
        timers=timers,
        scheduler=scheduler,
        projects=projects,
        tasks=tasks,
        notify_executor=notify_executor,
    )


def main() -> int:
    setup_logging()
    try:
        init_db()
    except Exception as exc:  # noqa: BLE001
        logger.critical("DB error: %s", exc)
        return 1

    services = build_services()
    services.scheduler.restore()
    services.timers.start()

    stop = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: stop.set())
    signal.signal(signal.SIGTERM, lambda *_: stop.set())
    logger.info("Lifecycle scheduler running")
    stop.wait()

    logger.info("Shutting down")
    services.shutdown()
    return 0


if __name__ == "__main__":
    sys.exit(main())
