from __future__ import annotations

from enum import IntEnum, StrEnum


class TaskStatus(StrEnum):
    ACTIVE = "Active"
    IN_PROGRESS = "InProgress"
    MISSED = "Missed"
    COMPLETED = "Completed"
    DELETED = "Deleted"


OPEN_STATUSES = frozenset({TaskStatus.ACTIVE, TaskStatus.IN_PROGRESS})
TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.DELETED})


class ProjectStatus(StrEnum):
    ACTIVE = "Active"
    ARCHIVE = "Archive"
    DELETED = "Deleted"


class Frequency(StrEnum):
    ONCE = "once"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class DueType(StrEnum):
    AFTER = "After"
    DATE = "Date"


class Weekday(IntEnum):
    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6


class TransitionKind(StrEnum):
    ACTIVATE = "active"
    REMIND = "remind"
    MISS = "missed"


class NotificationKind(StrEnum):
    ACTIVATED = "activated"
    REMINDER = "reminder"
    MISSED = "missed"
    COMPLETED = "completed"
    COMMENT_ADDED = "comment_added"
