"""
Admin console router — teams, tracks, deadlines and auto-assignment.

Every successful mutation that participants care about publishes exactly one
live event so open dashboards update without polling.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.encoders import jsonable_encoder
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.database import get_db, get_session_factory
from app.models.team import Team
from app.models.track import Track
from app.models.user import User
from app.routers.auth import require_admin
from app.schemas.config import ConfigOut, ConfigUpdate, DeadlineIn
from app.schemas.team import AssignTrackIn, TeamCreate, TeamOut, TeamSummary, TeamWithStats
from app.schemas.track import TrackIn, TrackOut, TrackUpdate, TrackWithCount
from app.schemas.user import AssignTeamIn, MemberOut
from app.services.domains import (
    DomainDirectory,
    auto_assign_users_to_teams,
    get_all_domains,
    get_domain_directory,
    get_teams_with_domain_counts,
)
from app.services.events import Event, EventBroadcaster, EventType, get_broadcaster
from app.services.retry import StoreUnavailableError
from app.services.teams import get_or_create_config, load_team, load_teams
from app.utils.datetime_utils import as_utc

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])

MIN_TEAM_SIZE = 2


def _team_payload(team: Team) -> dict:
    return TeamOut.model_validate(team).model_dump(mode="json")


# ═══════════════════════════════════════════════════════════════
#  Team membership
# ═══════════════════════════════════════════════════════════════

@router.post("/assign-team")
async def assign_team(
    body: AssignTeamIn,
    db: AsyncSession = Depends(get_db),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    """Manually move a participant into a team (or out of any team)."""
    user = (await db.execute(select(User).where(User.id == body.user_id))).scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    team = None
    if body.team_id is not None:
        team = await load_team(db, body.team_id)
        if not team:
            raise HTTPException(status_code=404, detail="Team not found")

    user.team_id = body.team_id
    await db.commit()

    member = MemberOut.model_validate(user).model_dump(mode="json")
    if team is not None:
        team = await load_team(db, team.id)
        message = f"{user.name or user.email} has been assigned to team \"{team.name}\""
        data = {"user": member, "team": _team_payload(team), "message": message}
    else:
        data = {"user": member, "team": None, "message": f"{user.name or user.email} has been removed from their team"}
    broadcaster.publish(Event(type=EventType.TEAM_ASSIGNED, data=data))

    return {"success": True, "user": member}


@router.post("/auto-assign-teams")
async def auto_assign_teams(
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    directory: DomainDirectory = Depends(get_domain_directory),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    """Distribute all unassigned participants across teams, balancing domains."""
    try:
        report = await auto_assign_users_to_teams(session_factory, directory)
    except StoreUnavailableError as e:
        logger.error(f"Auto-assign aborted, store unavailable: {e.__cause__}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    if not report.ok:
        raise HTTPException(status_code=400, detail=report.error)

    teams = await load_teams(db)
    broadcaster.publish(Event(
        type=EventType.TEAM_ASSIGNED,
        data={
            "teams": [_team_payload(t) for t in teams],
            "message": "Teams have been assigned!",
        },
    ))
    return report.as_dict()


# ═══════════════════════════════════════════════════════════════
#  Tracks
# ═══════════════════════════════════════════════════════════════

@router.post("/assign-track")
async def assign_track(
    body: AssignTrackIn,
    db: AsyncSession = Depends(get_db),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    """Attach a team to a track, or detach it when ``track_id`` is null."""
    team = await load_team(db, body.team_id)
    if not team:
        raise HTTPException(status_code=404, detail="Team not found")
    if body.track_id is not None:
        track = (await db.execute(select(Track).where(Track.id == body.track_id))).scalar_one_or_none()
        if not track:
            raise HTTPException(status_code=404, detail="Track not found")

    team.track_id = body.track_id
    await db.commit()
    team = await load_team(db, body.team_id)

    message = (
        f"Your team has been assigned to the \"{team.track.name}\" track"
        if team.track
        else "Your team's track has been removed"
    )
    payload = _team_payload(team)
    broadcaster.publish(Event(type=EventType.TEAM_UPDATED, data={"team": payload, "message": message}))
    return {"success": True, "team": payload}


@router.get("/tracks", response_model=List[TrackWithCount])
async def list_tracks(db: AsyncSession = Depends(get_db)):
    """All tracks ordered by name, with the number of teams using each."""
    result = await db.execute(
        select(Track, func.count(Team.id))
        .outerjoin(Team, Team.track_id == Track.id)
        .group_by(Track.id)
        .order_by(Track.name)
    )
    return [
        TrackWithCount(**TrackOut.model_validate(track).model_dump(), team_count=count)
        for track, count in result.all()
    ]


@router.post("/tracks", response_model=TrackOut)
async def create_track(body: TrackIn, db: AsyncSession = Depends(get_db)):
    track = Track(name=body.name, description=body.description, color=body.color or None)
    db.add(track)
    await db.commit()
    await db.refresh(track)
    return track


@router.put("/tracks", response_model=TrackOut)
async def update_track(body: TrackUpdate, db: AsyncSession = Depends(get_db)):
    track = (await db.execute(select(Track).where(Track.id == body.id))).scalar_one_or_none()
    if not track:
        raise HTTPException(status_code=404, detail="Track not found")
    track.name = body.name
    track.description = body.description
    track.color = body.color or None
    await db.commit()
    await db.refresh(track)
    return track


@router.delete("/tracks")
async def delete_track(id: Optional[int] = None, db: AsyncSession = Depends(get_db)):
    """Delete a track after detaching every team that uses it."""
    if id is None:
        raise HTTPException(status_code=400, detail="Track ID is required")
    track = (await db.execute(select(Track).where(Track.id == id))).scalar_one_or_none()
    if not track:
        raise HTTPException(status_code=404, detail="Track not found")

    await db.execute(update(Team).where(Team.track_id == id).values(track_id=None))
    await db.execute(delete(Track).where(Track.id == id))
    await db.commit()
    return {"success": True}


# ═══════════════════════════════════════════════════════════════
#  Teams
# ═══════════════════════════════════════════════════════════════

@router.get("/teams", response_model=List[TeamSummary])
async def list_teams(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Team).order_by(Team.id))
    return result.scalars().all()


@router.post("/teams", response_model=TeamSummary)
async def create_team(body: TeamCreate, db: AsyncSession = Depends(get_db)):
    team = Team(name=body.name)
    db.add(team)
    await db.commit()
    await db.refresh(team)
    return team


@router.get("/teams-with-users", response_model=List[TeamWithStats])
async def teams_with_users(session_factory: async_sessionmaker = Depends(get_session_factory)):
    """Teams with members, per-domain counts and member totals."""
    try:
        return await get_teams_with_domain_counts(session_factory)
    except StoreUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


@router.get("/domains", response_model=List[str])
async def list_domains(directory: DomainDirectory = Depends(get_domain_directory)):
    return get_all_domains(directory)


# ═══════════════════════════════════════════════════════════════
#  Event configuration
# ═══════════════════════════════════════════════════════════════

@router.get("/config", response_model=ConfigOut)
async def read_config(db: AsyncSession = Depends(get_db)):
    config = await get_or_create_config(db)
    await db.commit()
    return config


@router.post("/config", response_model=ConfigOut)
async def update_config(
    body: ConfigUpdate,
    db: AsyncSession = Depends(get_db),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    """Partially update the event configuration."""
    fields = body.model_fields_set
    config = await get_or_create_config(db)
    was_started, was_ended = config.event_started, config.event_ended

    if "team_size" in fields and body.team_size is not None and body.team_size >= MIN_TEAM_SIZE:
        config.team_size = body.team_size
    if "deadline" in fields:
        config.deadline = body.deadline
    if "event_started" in fields and body.event_started is not None:
        config.event_started = body.event_started
    if "event_ended" in fields and body.event_ended is not None:
        config.event_ended = body.event_ended
    if "tracks_enabled" in fields and body.tracks_enabled is not None:
        config.tracks_enabled = body.tracks_enabled
    await db.commit()
    await db.refresh(config)

    if "deadline" in fields:
        broadcaster.publish(Event(
            type=EventType.DEADLINE_UPDATED,
            data={
                "deadline": jsonable_encoder(as_utc(config.deadline)),
                "message": "The submission deadline has been updated",
            },
        ))
    elif config.event_ended and not was_ended:
        broadcaster.publish(Event(type=EventType.EVENT_ENDED, data={"message": "The event has ended"}))
    elif config.event_started and not was_started:
        broadcaster.publish(Event(type=EventType.EVENT_STARTED, data={"message": "The event has started!"}))

    return config


@router.post("/deadline")
async def set_deadline(
    body: DeadlineIn,
    db: AsyncSession = Depends(get_db),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    """Set or clear the idea submission deadline."""
    config = await get_or_create_config(db)
    config.deadline = body.deadline
    await db.commit()
    await db.refresh(config)

    deadline = as_utc(config.deadline)
    message = (
        f"Submission deadline has been set to {deadline:%Y-%m-%d %H:%M} UTC"
        if deadline
        else "Submission deadline has been removed"
    )
    broadcaster.publish(Event(
        type=EventType.DEADLINE_UPDATED,
        data={"deadline": jsonable_encoder(deadline), "message": message},
    ))
    return {"success": True, "config": ConfigOut.model_validate(config).model_dump(mode="json")}
