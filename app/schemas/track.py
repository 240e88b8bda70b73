"""Track Pydantic schemas."""

from typing import Optional

from pydantic import BaseModel, field_validator


class TrackIn(BaseModel):
    name: str
    description: Optional[str] = None
    color: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Track name is required")
        return v

    @field_validator("description")
    @classmethod
    def _strip_description(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None


class TrackUpdate(TrackIn):
    id: int


class TrackOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    color: Optional[str] = None

    model_config = {"from_attributes": True}


class TrackWithCount(TrackOut):
    team_count: int = 0
