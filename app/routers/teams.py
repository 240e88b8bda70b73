"""Teams router – a participant's own team: details, rename, idea submission."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models.team import Team
from app.models.user import User
from app.routers.auth import is_admin, require_user
from app.schemas.team import IdeaSubmission, TeamOut, TeamRename
from app.services.events import Event, EventBroadcaster, EventType, get_broadcaster
from app.services.teams import get_or_create_config, load_team, submissions_closed

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/teams", tags=["teams"])


async def _own_team(db: AsyncSession, user: User) -> Team:
    """The current participant's team, or 400 when they have none."""
    if not user.team_id:
        raise HTTPException(status_code=400, detail="You are not assigned to a team")
    team = await load_team(db, user.team_id)
    if not team:
        raise HTTPException(status_code=404, detail="Team not found")
    return team


@router.post("/submit-idea")
async def submit_idea(
    body: IdeaSubmission,
    current_user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    """Submit (or resubmit) the team's idea while submissions are open."""
    team = await _own_team(db, current_user)

    config = await get_or_create_config(db)
    reason = submissions_closed(config)
    if reason:
        raise HTTPException(status_code=400, detail=reason)

    team.idea_title = body.title
    team.idea_description = body.description
    team.idea_link = body.link
    team.is_submitted = True
    team.submitted_at = datetime.now(timezone.utc)
    await db.commit()

    team = await load_team(db, team.id)
    payload = TeamOut.model_validate(team).model_dump(mode="json")
    broadcaster.publish(Event(
        type=EventType.IDEA_SUBMITTED,
        data={"team": payload, "message": f"Team \"{team.name}\" has submitted their idea!"},
    ))
    logger.info(f"Team {team.id} submitted idea {body.title!r}")
    return {"success": True, "team": payload}


@router.put("/update-name")
async def update_team_name(
    body: TeamRename,
    current_user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    """Rename the current participant's team."""
    team = await _own_team(db, current_user)
    team.name = body.name
    await db.commit()

    team = await load_team(db, team.id)
    payload = TeamOut.model_validate(team).model_dump(mode="json")
    broadcaster.publish(Event(
        type=EventType.TEAM_UPDATED,
        data={"team": payload, "message": f"Team name has been updated to \"{body.name}\""},
    ))
    return {"success": True, "team": payload}


@router.get("/{team_id}", response_model=TeamOut)
async def read_team(
    team_id: int,
    current_user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    """Team detail for its members and admins."""
    team = await load_team(db, team_id)
    if not team:
        raise HTTPException(status_code=404, detail="Team not found")
    if current_user.team_id != team.id and not is_admin(current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Unauthorized - You are not a member of this team",
        )
    return team
