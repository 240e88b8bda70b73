"""User Pydantic schemas — participant output."""

from typing import Optional

from pydantic import BaseModel

from app.models.user import Domain


class MemberOut(BaseModel):
    """A team member as shown on dashboards and in events."""
    id: int
    name: Optional[str] = None
    email: str
    image: Optional[str] = None
    domain: Optional[Domain] = None

    model_config = {"from_attributes": True}


class UserOut(MemberOut):
    """The signed-in participant."""
    team_id: Optional[int] = None
    is_admin: bool = False


class AssignTeamIn(BaseModel):
    user_id: int
    team_id: Optional[int] = None
