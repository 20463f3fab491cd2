"""Collaborators owned outside the scheduling core."""
from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from ops360.domain.entities import TeamEntity, UserEntity


class TeamDirectory(Protocol):
    """Team hierarchy lookup."""

    def get(self, team_id: int) -> TeamEntity | None:
        ...

    def find_children(self, team_id: int) -> list[TeamEntity]:
        ...


class UserDirectory(Protocol):
    """User lookup by role and by identity."""

    def find_by_role(self, role_id: int) -> list[int]:
        ...

    def find_by_ids(self, user_ids: Iterable[int]) -> list[UserEntity]:
        ...


class NotificationSink(Protocol):
    """Delivers one message to one address."""

    def send(self, address: str, subject: str, body: str) -> bool:
        """Return ``True`` when the message was accepted for delivery."""
        ...
