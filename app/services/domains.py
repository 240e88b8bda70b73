"""
Domain tagging and balanced auto-assignment.

Participants get a domain (web, app, research, ...) from a static
email → domain table the organisers provide. Auto-assignment reads the
unassigned participants and the existing teams, asks
:func:`app.services.balancer.balance_teams` for a plan and writes each
placement in its own transaction; one failed write never undoes the others.
"""

import json
import logging
from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from fastapi import Request
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import selectinload

from app.config import settings
from app.models.event_config import CONFIG_ID, EventConfig
from app.models.team import Team
from app.models.user import Domain, User
from app.schemas.team import TeamWithStats
from app.services.balancer import (
    NO_TEAMS_ERROR,
    UNKNOWN_DOMAIN,
    ParticipantSnapshot,
    TeamSnapshot,
    balance_teams,
)
from app.services.retry import StoreUnavailableError, store_retry

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════
#  Email → domain lookup table
# ═══════════════════════════════════════════════════════════════

class DomainDirectory:
    """Static, case-insensitive email → domain table."""

    def __init__(self, mapping: Optional[Dict[str, str]] = None):
        self._by_email: Dict[str, Domain] = {}
        for email, domain in (mapping or {}).items():
            try:
                self._by_email[email.strip().lower()] = Domain(domain.strip().lower())
            except ValueError:
                logger.warning(f"DomainDirectory: ignoring unknown domain {domain!r} for {email}")

    @classmethod
    def from_entries(cls, entries: Iterable[dict]) -> "DomainDirectory":
        """Build from ``[{"Email": ..., "Domain": ...}, ...]`` rows."""
        mapping = {}
        for entry in entries:
            email, domain = entry.get("Email"), entry.get("Domain")
            if email and domain:
                mapping[email] = domain
        return cls(mapping)

    @classmethod
    def from_file(cls, path: str) -> "DomainDirectory":
        file = Path(path)
        if not file.exists():
            logger.warning(f"DomainDirectory: {path} not found, starting with an empty table")
            return cls()
        with file.open(encoding="utf-8") as f:
            directory = cls.from_entries(json.load(f))
        logger.info(f"DomainDirectory: loaded {len(directory)} entries from {path}")
        return directory

    def lookup(self, email: Optional[str]) -> Optional[Domain]:
        if not email:
            return None
        return self._by_email.get(email.strip().lower())

    def domains(self) -> List[str]:
        return sorted({d.value for d in self._by_email.values()})

    def __len__(self) -> int:
        return len(self._by_email)


# ═══════════════════════════════════════════════════════════════
#  Results
# ═══════════════════════════════════════════════════════════════

@dataclass
class DomainAssignment:
    user_id: int
    domain: Optional[str] = None
    changed: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class AutoAssignReport:
    ok: bool
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    unplaced: int = 0
    tagged: int = 0
    error: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "success": self.ok,
            "processed": self.processed,
            "count": self.succeeded,
            "failed": self.failed,
            "unplaced": self.unplaced,
            "tagged": self.tagged,
            "error": self.error,
        }


# ═══════════════════════════════════════════════════════════════
#  Store access (each call is one retried unit of work)
# ═══════════════════════════════════════════════════════════════

@store_retry
async def _load_user(session_factory: async_sessionmaker, user_id: int) -> Optional[User]:
    async with session_factory() as session:
        result = await session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()


@store_retry
async def _persist_domain(session_factory: async_sessionmaker, user_id: int, domain: Domain) -> None:
    # Never overwrite an existing tag.
    async with session_factory() as session:
        await session.execute(
            update(User)
            .where(User.id == user_id, User.domain.is_(None))
            .values(domain=domain)
        )
        await session.commit()


@store_retry
async def _persist_team(session_factory: async_sessionmaker, user_id: int, team_id: int) -> None:
    async with session_factory() as session:
        await session.execute(update(User).where(User.id == user_id).values(team_id=team_id))
        await session.commit()


@store_retry
async def load_team_size(session_factory: async_sessionmaker) -> int:
    async with session_factory() as session:
        result = await session.execute(select(EventConfig).where(EventConfig.id == CONFIG_ID))
        config = result.scalar_one_or_none()
    return config.team_size if config else settings.DEFAULT_TEAM_SIZE


@store_retry
async def _load_unassigned(session_factory: async_sessionmaker) -> List[Tuple[int, str, Optional[Domain]]]:
    # Organisers are never placed in teams.
    query = select(User.id, User.email, User.domain).where(User.team_id.is_(None))
    if settings.admin_emails:
        query = query.where(func.lower(User.email).not_in(settings.admin_emails))
    async with session_factory() as session:
        result = await session.execute(query.order_by(User.id))
        return [tuple(row) for row in result.all()]


@store_retry
async def _load_teams(session_factory: async_sessionmaker) -> List[Team]:
    async with session_factory() as session:
        result = await session.execute(
            select(Team)
            .options(selectinload(Team.users), selectinload(Team.track))
            .order_by(Team.id)
        )
        return list(result.scalars().all())


def _domain_key(domain: Optional[Domain]) -> Optional[str]:
    return getattr(domain, "value", domain)


def _domain_counts(team: Team) -> Counter:
    return Counter(_domain_key(u.domain) or UNKNOWN_DOMAIN for u in team.users)


# ═══════════════════════════════════════════════════════════════
#  Public operations
# ═══════════════════════════════════════════════════════════════

async def _tag_participant(
    session_factory: async_sessionmaker,
    directory: DomainDirectory,
    user_id: int,
    email: str,
) -> Optional[Domain]:
    """Look up and persist a domain; None when the email is not in the table."""
    domain = directory.lookup(email)
    if domain is None:
        return None
    await _persist_domain(session_factory, user_id, domain)
    return domain


async def assign_domain_to_user(
    session_factory: async_sessionmaker,
    directory: DomainDirectory,
    user_id: int,
) -> DomainAssignment:
    """
    Tag a participant with their domain. Idempotent: an existing tag is
    returned untouched without consulting the lookup table.
    """
    try:
        user = await _load_user(session_factory, user_id)
        if user is None:
            return DomainAssignment(user_id, error="User not found")
        if user.domain is not None:
            return DomainAssignment(user_id, domain=_domain_key(user.domain))

        domain = await _tag_participant(session_factory, directory, user_id, user.email)
    except (StoreUnavailableError, SQLAlchemyError) as e:
        logger.error(f"Failed to assign domain to user {user_id}: {e}", exc_info=True)
        return DomainAssignment(user_id, error=str(e))

    if domain is None:
        return DomainAssignment(user_id, error="Domain not found for email")
    logger.info(f"Assigned domain {domain.value} to user {user_id}")
    return DomainAssignment(user_id, domain=domain.value, changed=True)


async def get_teams_with_domain_counts(session_factory: async_sessionmaker) -> List[TeamWithStats]:
    """All teams with their members and per-domain member counts."""
    teams = await _load_teams(session_factory)
    out = []
    for team in teams:
        counts = Counter(_domain_key(u.domain) for u in team.users if u.domain is not None)
        stats = TeamWithStats.model_validate(team)
        stats.domain_counts = dict(counts)
        stats.total_members = len(team.users)
        out.append(stats)
    return out


def get_all_domains(directory: DomainDirectory) -> List[str]:
    return directory.domains()


async def auto_assign_users_to_teams(
    session_factory: async_sessionmaker,
    directory: DomainDirectory,
) -> AutoAssignReport:
    """
    Place every unassigned participant into a team, balancing domains.

    Bulk reads are retried and raise :class:`StoreUnavailableError` when the
    store stays down. Per-participant failures are logged and counted; an
    untagged participant whose e-mail is not in the lookup table is one of
    them and waits for a later pass.
    """
    team_size = await load_team_size(session_factory)
    unassigned = await _load_unassigned(session_factory)
    teams = await _load_teams(session_factory)

    if not teams:
        logger.warning("Auto-assign: no teams defined, nothing to do")
        return AutoAssignReport(ok=False, processed=len(unassigned), error=NO_TEAMS_ERROR)
    if not unassigned:
        return AutoAssignReport(ok=True)

    report = AutoAssignReport(ok=True, processed=len(unassigned))
    snapshots: List[ParticipantSnapshot] = []
    for user_id, email, domain in unassigned:
        if domain is None:
            try:
                domain = await _tag_participant(session_factory, directory, user_id, email)
            except (StoreUnavailableError, SQLAlchemyError) as e:
                logger.error(f"Auto-assign: could not tag user {user_id}: {e}", exc_info=True)
                report.failed += 1
                continue
            if domain is None:
                logger.warning(f"Auto-assign: no domain found for user {user_id}, skipping this pass")
                report.failed += 1
                continue
            report.tagged += 1
        snapshots.append(ParticipantSnapshot(id=user_id, domain=_domain_key(domain)))

    plan = balance_teams(
        snapshots,
        [TeamSnapshot(id=t.id, size=len(t.users), domain_counts=_domain_counts(t)) for t in teams],
        team_size,
    )

    for user_id, team_id in plan.placements.items():
        try:
            await _persist_team(session_factory, user_id, team_id)
            report.succeeded += 1
        except (StoreUnavailableError, SQLAlchemyError) as e:
            logger.error(f"Auto-assign: failed to place user {user_id} in team {team_id}: {e}", exc_info=True)
            report.failed += 1

    report.unplaced = len(plan.unplaced)
    logger.info(
        f"Auto-assign: processed={report.processed} succeeded={report.succeeded} "
        f"failed={report.failed} unplaced={report.unplaced}"
    )
    return report


def get_domain_directory(request: Request) -> DomainDirectory:
    """FastAPI dependency: the lookup table loaded in the lifespan."""
    return request.app.state.domain_directory
