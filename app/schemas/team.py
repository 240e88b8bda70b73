"""Team Pydantic schemas."""

from datetime import datetime
from typing import Dict, List, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator

from app.schemas.track import TrackOut
from app.schemas.user import MemberOut


class TeamCreate(BaseModel):
    name: str

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Team name is required")
        return v


class TeamRename(BaseModel):
    name: str

    @field_validator("name")
    @classmethod
    def _name_length(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("Team name must be at least 3 characters")
        return v


class TeamSummary(BaseModel):
    id: int
    name: str

    model_config = {"from_attributes": True}


class TeamOut(BaseModel):
    id: int
    name: str
    track_id: Optional[int] = None
    track: Optional[TrackOut] = None
    idea_title: Optional[str] = None
    idea_description: Optional[str] = None
    idea_link: Optional[str] = None
    is_submitted: bool = False
    submitted_at: Optional[datetime] = None
    users: List[MemberOut] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class TeamWithStats(TeamOut):
    domain_counts: Dict[str, int] = Field(default_factory=dict)
    total_members: int = 0


class AssignTrackIn(BaseModel):
    team_id: int
    track_id: Optional[int] = None


class IdeaSubmission(BaseModel):
    title: str
    description: str
    link: Optional[str] = None

    @field_validator("title")
    @classmethod
    def _title_length(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("Idea title must be at least 3 characters")
        return v

    @field_validator("description")
    @classmethod
    def _description_length(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 10:
            raise ValueError("Idea description must be at least 10 characters")
        return v

    @field_validator("link")
    @classmethod
    def _link_is_http(cls, v: Optional[str]) -> Optional[str]:
        if not v or not v.strip():
            return None
        v = v.strip()
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("Link must be a valid HTTP/HTTPS URL")
        return v
