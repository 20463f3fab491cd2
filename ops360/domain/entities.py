from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional, Union

from .enums import DueType, Frequency, ProjectStatus, TaskStatus, TransitionKind, Weekday
from .errors import ValidationError


def _parse_weekday(value: object) -> Weekday:
    if isinstance(value, Weekday):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        try:
            return Weekday(value)
        except ValueError:
            raise ValidationError(f"Weekday number out of range: {value}") from None
    if isinstance(value, str):
        try:
            return Weekday[value.strip().upper()]
        except KeyError:
            raise ValidationError(f"Unknown weekday: {value!r}") from None
    raise ValidationError(f"Unsupported weekday value: {value!r}")


@dataclass(frozen=True)
class RecurrenceRule:
    frequency: Frequency
    due_type: DueType
    interval: int = 1
    byweekday: tuple[Weekday, ...] = ()
    after: Optional[int] = None
    end_date: Optional[date] = None

    @classmethod
    def from_dict(cls, data: dict) -> RecurrenceRule:
        """Build a rule from request/storage data.

        Only structural parsing happens here; semantic checks live in
        ``recurrence.validate_rule``.
        """
        try:
            frequency = Frequency(data.get("frequency"))
        except ValueError:
            raise ValidationError(
                f"Invalid recurrence frequency type: {data.get('frequency')!r}"
            ) from None
        try:
            due_type = DueType(data.get("due_type"))
        except ValueError:
            raise ValidationError(f"Invalid recurrence due_type: {data.get('due_type')!r}") from None

        weekdays: list[Weekday] = []
        for raw in data.get("byweekday") or ():
            weekday = _parse_weekday(raw)
            if weekday not in weekdays:
                weekdays.append(weekday)

        end_date = data.get("end_date", data.get("date"))
        if isinstance(end_date, datetime):
            end_date = end_date.date()
        elif isinstance(end_date, str):
            try:
                end_date = date.fromisoformat(end_date[:10])
            except ValueError:
                raise ValidationError(f"Invalid recurrence end date: {end_date!r}") from None

        try:
            interval = data.get("interval")
            interval = int(interval) if interval is not None else 1
            after = data.get("after")
            after = int(after) if after is not None else None
        except (TypeError, ValueError):
            raise ValidationError("Recurrence interval and after must be integers") from None

        return cls(
            frequency=frequency,
            due_type=due_type,
            interval=interval,
            byweekday=tuple(weekdays),
            after=after,
            end_date=end_date,
        )

    def to_dict(self) -> dict:
        return {
            "frequency": self.frequency.value,
            "due_type": self.due_type.value,
            "interval": self.interval,
            "byweekday": [day.name.capitalize() for day in self.byweekday],
            "after": self.after,
            "end_date": self.end_date.isoformat() if self.end_date else None,
        }


@dataclass(frozen=True)
class Occurrence:
    start: datetime
    due: datetime


@dataclass(frozen=True)
class CommentEntity:
    id: int | None
    author_id: int
    text: str
    created_at: datetime


@dataclass(frozen=True)
class TaskEntity:
    id: int | None
    title: str
    description: str
    status: TaskStatus
    assignees: tuple[int, ...]
    creator_id: int
    followers: tuple[int, ...]
    location_id: int | None
    team_id: int | None
    project_id: int | None
    date_start: datetime
    due_date: datetime
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None
    completed_by: int | None = None
    comments: tuple[CommentEntity, ...] = ()


@dataclass(frozen=True)
class ProjectEntity:
    id: int | None
    title: str
    instruction: str
    status: ProjectStatus
    team_id: int
    assigned_role_id: int
    creator_id: int
    followers: tuple[int, ...]
    locations_at: tuple[int, ...]
    recurrence: RecurrenceRule
    tasks: tuple[int, ...]
    no_of_tasks: int
    parent_project_id: int | None
    child_project_ids: tuple[int, ...]
    created_at: datetime
    updated_at: datetime

    @property
    def is_parent(self) -> bool:
        return bool(self.child_project_ids)


@dataclass(frozen=True)
class TeamEntity:
    id: int
    name: str
    parent_id: int | None
    location_ids: tuple[int, ...]


@dataclass(frozen=True)
class UserEntity:
    id: int
    email: str
    firstname: str = ""
    lastname: str = ""
    role_id: int | None = None

    @property
    def display_name(self) -> str:
        name = f"{self.firstname} {self.lastname}".strip()
        return name or self.email


@dataclass(frozen=True)
class Unresolved:
    """A user reference whose directory record was not joined in."""

    id: int


Reference = Union[Unresolved, UserEntity]


@dataclass(frozen=True)
class ScheduledTransition:
    task_id: int
    kind: TransitionKind
    fire_at: datetime


@dataclass(frozen=True)
class TaskDraft:
    title: str
    description: str
    assignees: tuple[int, ...]
    creator_id: int
    followers: tuple[int, ...]
    location_id: int | None
    team_id: int | None
    date_start: datetime
    due_date: datetime


@dataclass(frozen=True)
class ProjectDraft:
    title: str
    instruction: str
    team_id: int
    assigned_role_id: int
    creator_id: int
    followers: tuple[int, ...]
    locations_at: tuple[int, ...]
    recurrence: RecurrenceRule
    tasks: list[TaskDraft] = field(default_factory=list)
