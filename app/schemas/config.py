"""Event configuration Pydantic schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from app.utils.datetime_utils import as_utc


class PublicConfigOut(BaseModel):
    deadline: Optional[datetime] = None
    event_started: bool = False
    event_ended: bool = False
    tracks_enabled: bool = False

    model_config = {"from_attributes": True}

    @field_validator("deadline")
    @classmethod
    def _deadline_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)


class ConfigOut(PublicConfigOut):
    team_size: int


class ConfigUpdate(BaseModel):
    """Partial update; only fields present in the request body are applied."""
    team_size: Optional[int] = None
    deadline: Optional[datetime] = None
    event_started: Optional[bool] = None
    event_ended: Optional[bool] = None
    tracks_enabled: Optional[bool] = None


class DeadlineIn(BaseModel):
    deadline: Optional[datetime] = None
