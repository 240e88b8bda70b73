"""
Balanced auto-assignment of participants to teams.

Pure planning step: takes snapshots of the unassigned participants and the
existing teams and returns a placement plan. Persisting the plan is done
separately by :mod:`app.services.domains`.

Algorithm (greedy round-robin by domain):
    1. group participants by domain (untagged → ``"unknown"``)
    2. take the domain group with the most members still waiting
    3. place its next member in the team with spare capacity and the fewest
       members of that domain; ties go to the smaller team, then to the team
       supplied first (creation order)
    4. repeat until everyone is placed or every team is full
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

UNKNOWN_DOMAIN = "unknown"
NO_TEAMS_ERROR = "no teams to assign to"


@dataclass(frozen=True)
class ParticipantSnapshot:
    id: int
    domain: Optional[str] = None

    @property
    def bucket(self) -> str:
        return self.domain or UNKNOWN_DOMAIN


@dataclass(frozen=True)
class TeamSnapshot:
    id: int
    size: int = 0
    domain_counts: Mapping[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class BalancePlan:
    placements: Dict[int, int] = field(default_factory=dict)
    unplaced: Tuple[int, ...] = ()
    team_domain_counts: Dict[int, Dict[str, int]] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def balance_teams(
    participants: Sequence[ParticipantSnapshot],
    teams: Sequence[TeamSnapshot],
    team_size: int,
) -> BalancePlan:
    """Compute a participant → team mapping that keeps domain counts even."""
    if not teams:
        return BalancePlan(
            unplaced=tuple(p.id for p in participants),
            error=NO_TEAMS_ERROR,
        )

    sizes: List[int] = [t.size for t in teams]
    counts: List[Counter] = [Counter(t.domain_counts) for t in teams]

    # Members wait in input order within their domain group.
    groups: Dict[str, List[int]] = {}
    for p in participants:
        groups.setdefault(p.bucket, []).append(p.id)
    for waiting in groups.values():
        waiting.reverse()

    placements: Dict[int, int] = {}
    while True:
        open_teams = [i for i, size in enumerate(sizes) if size < team_size]
        pending = [d for d, waiting in groups.items() if waiting]
        if not open_teams or not pending:
            break

        domain = min(pending, key=lambda d: (-len(groups[d]), d))
        target = min(open_teams, key=lambda i: (counts[i][domain], sizes[i], i))

        placements[groups[domain].pop()] = teams[target].id
        sizes[target] += 1
        counts[target][domain] += 1

    unplaced = tuple(p.id for p in participants if p.id not in placements)
    return BalancePlan(
        placements=placements,
        unplaced=unplaced,
        team_domain_counts={t.id: dict(counts[i]) for i, t in enumerate(teams)},
    )
