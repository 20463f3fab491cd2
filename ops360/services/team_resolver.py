from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from ops360.domain.entities import TeamEntity
from ops360.domain.errors import NotFoundError

from .directory import TeamDirectory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TeamScope:
    team: TeamEntity
    children: tuple[TeamEntity, ...]
    locations: dict[int, tuple[int, ...]] = field(default_factory=dict)

    def locations_for(self, team: TeamEntity) -> tuple[int, ...]:
        return self.locations.get(team.id, ())


def scope_locations(owned: Iterable[int], requested: Iterable[int] | None) -> tuple[int, ...]:
    """Locations of a team narrowed to ``requested``.

    ``None`` means no narrowing. Requested ids the team does not own are
    dropped silently; the request order is kept.
    """
    owned_ids = tuple(dict.fromkeys(owned))
    if requested is None:
        return owned_ids
    owned_set = set(owned_ids)
    return tuple(location for location in dict.fromkeys(requested) if location in owned_set)


class TeamLocationResolver:
    def __init__(self, teams: TeamDirectory) -> None:
        self._teams = teams

    def resolve(self, team_id: int, requested_location_ids: Iterable[int] | None = None) -> TeamScope:
        team = self._teams.get(team_id)
        if team is None:
            raise NotFoundError("Team", team_id)

        requested = list(requested_location_ids) if requested_location_ids is not None else None
        children = tuple(self._teams.find_children(team_id))

        # Children are narrowed against their own locations only, not
        # against the root's narrowed subset.
        locations = {team.id: scope_locations(team.location_ids, requested)}
        for child in children:
            locations[child.id] = scope_locations(child.location_ids, requested)

        logger.debug(
            "Resolved team %s: %d child team(s), %d root location(s)",
            team_id,
            len(children),
            len(locations[team.id]),
        )
        return TeamScope(team=team, children=children, locations=locations)
