"""Time-triggered task lifecycle: activation, reminder and missed transitions."""
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from ops360.domain.entities import ScheduledTransition, TaskEntity
from ops360.domain.enums import (
    OPEN_STATUSES,
    TERMINAL_STATUSES,
    NotificationKind,
    TaskStatus,
    TransitionKind,
)
from ops360.infra.repository import TaskRepository, TransitionRepository

from .notifications import NotificationDispatcher
from .timers import TimerService

logger = logging.getLogger(__name__)

_KEY_SUFFIX = {
    TransitionKind.REMIND: "",
    TransitionKind.ACTIVATE: "-active",
    TransitionKind.MISS: "-missed",
}


def timer_key(task_id: int, kind: TransitionKind) -> str:
    return f"{task_id}{_KEY_SUFFIX[kind]}"


class TaskLifecycleScheduler:
    def __init__(
        self,
        timers: TimerService,
        tasks: TaskRepository,
        transitions: TransitionRepository,
        notifier: NotificationDispatcher,
        clock: Callable[[], datetime] = datetime.now,
        reminder_lead: timedelta = timedelta(days=1),
    ) -> None:
        self._timers = timers
        self._tasks = tasks
        self._transitions = transitions
        self._notifier = notifier
        self._clock = clock
        self._reminder_lead = reminder_lead

    def plan(self, task: TaskEntity, now: datetime | None = None) -> list[ScheduledTransition]:
        """Transitions still ahead of ``task`` as of ``now``."""
        if task.status not in OPEN_STATUSES:
            return []
        now = now or self._clock()
        planned = []
        if task.status == TaskStatus.ACTIVE and task.date_start > now:
            planned.append(ScheduledTransition(task.id, TransitionKind.ACTIVATE, task.date_start))
        if task.due_date > now:
            planned.append(ScheduledTransition(task.id, TransitionKind.REMIND, task.due_date - self._reminder_lead))
        planned.append(ScheduledTransition(task.id, TransitionKind.MISS, task.due_date))
        return planned

    def schedule(self, task: TaskEntity) -> list[ScheduledTransition]:
        """Replace whatever is pending for ``task`` with a fresh plan."""
        self._cancel_timers(task.id)
        planned = self.plan(task)
        self._transitions.replace_for_task(task.id, planned)
        for transition in planned:
            self._register(transition)
        logger.debug("Scheduled %d transition(s) for task %s", len(planned), task.id)
        return planned

    def cancel(self, task_id: int) -> None:
        self._cancel_timers(task_id)
        self._transitions.delete_for_task(task_id)
        logger.debug("Cancelled transitions for task %s", task_id)

    def restore(self) -> int:
        """Rebuild in-memory timers from storage after a restart."""
        restored = 0
        with_rows: set[int] = set()
        for transition in self._transitions.list_pending():
            with_rows.add(transition.task_id)
            self._register(transition)
            restored += 1

        # Open tasks committed without rows (e.g. a crash right after the
        # write) get a fresh plan.
        for task in self._tasks.list_open_tasks():
            if task.id not in with_rows:
                restored += len(self.schedule(task))

        logger.info("Restored %d lifecycle transition(s)", restored)
        return restored

    def fire(
        self,
        task_id: int,
        kind: TransitionKind,
        fire_at: datetime | None = None,
    ) -> TaskEntity | None:
        """Apply one transition; a no-op unless the task is still open.

        ``fire_at`` identifies the plan the callback belongs to, so a
        callback left over from a replaced plan never removes the new row.
        """
        self._transitions.delete(task_id, kind, fire_at)
        task = self._tasks.get_task(task_id)
        if task is None:
            logger.debug("Task %s vanished before %s fired", task_id, kind)
            return None
        if task.status in TERMINAL_STATUSES:
            logger.debug("Task %s is %s, skipping %s", task_id, task.status, kind)
            return task

        if kind == TransitionKind.ACTIVATE:
            if task.status == TaskStatus.ACTIVE:
                self._notifier.notify(task, NotificationKind.ACTIVATED)
            return task

        if kind == TransitionKind.REMIND:
            if task.status in OPEN_STATUSES:
                self._notifier.notify(task, NotificationKind.REMINDER)
                logger.info('Reminder: task "%s" (%s) is due %s', task.title, task.id, task.due_date)
            return task

        if task.due_date > self._clock():
            logger.debug("Task %s is not due until %s, skipping %s", task_id, task.due_date, kind)
            return task
        missed = self._tasks.transition_status(task_id, OPEN_STATUSES, TaskStatus.MISSED)
        if missed is None:
            return self._tasks.get_task(task_id)
        logger.info('Task "%s" (%s) has been marked as Missed', missed.title, missed.id)
        self._notifier.notify(missed, NotificationKind.MISSED)
        return missed

    def _register(self, transition: ScheduledTransition) -> None:
        task_id, kind, fire_at = transition.task_id, transition.kind, transition.fire_at
        self._timers.schedule(
            timer_key(task_id, kind),
            fire_at,
            lambda: self.fire(task_id, kind, fire_at),
        )

    def _cancel_timers(self, task_id: int) -> None:
        for kind in TransitionKind:
            self._timers.cancel(timer_key(task_id, kind))
