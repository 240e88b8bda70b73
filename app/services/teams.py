"""Team and event-config queries shared by the routers."""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import settings
from app.models.event_config import CONFIG_ID, EventConfig
from app.models.team import Team
from app.utils.datetime_utils import as_utc


async def load_team(db: AsyncSession, team_id: int) -> Optional[Team]:
    """A team with its members and track eagerly loaded."""
    result = await db.execute(
        select(Team)
        .options(selectinload(Team.users), selectinload(Team.track))
        .where(Team.id == team_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def load_teams(db: AsyncSession) -> List[Team]:
    result = await db.execute(
        select(Team)
        .options(selectinload(Team.users), selectinload(Team.track))
        .order_by(Team.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_or_create_config(db: AsyncSession) -> EventConfig:
    """Return the singleton config row, creating it with defaults if missing."""
    result = await db.execute(select(EventConfig).where(EventConfig.id == CONFIG_ID))
    config = result.scalar_one_or_none()
    if config is None:
        config = EventConfig(
            id=CONFIG_ID,
            team_size=settings.DEFAULT_TEAM_SIZE,
            deadline=None,
            event_started=False,
            event_ended=False,
            tracks_enabled=False,
        )
        db.add(config)
        await db.flush()
    return config


def submissions_closed(config: Optional[EventConfig], now: Optional[datetime] = None) -> Optional[str]:
    """Reason idea submissions are closed, or None while they are open."""
    if config is None or not settings.ENFORCE_SUBMISSION_DEADLINE:
        return None
    if config.event_ended:
        return "The event has ended"
    deadline = as_utc(config.deadline)
    now = now or datetime.now(timezone.utc)
    if deadline and now > deadline:
        return "The submission deadline has passed"
    return None
