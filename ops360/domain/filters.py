from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .enums import TaskStatus


@dataclass(frozen=True)
class TaskFilters:
    assignee: Optional[int] = None
    location: Optional[int] = None
    team: Optional[int] = None
    project: Optional[int] = None
    status: Optional[TaskStatus] = None
