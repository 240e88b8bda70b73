"""Users router – the signed-in participant."""

from fastapi import APIRouter, Depends

from app.models.user import User
from app.routers.auth import is_admin, require_user
from app.schemas.user import UserOut

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserOut)
async def read_me(current_user: User = Depends(require_user)):
    """Return the authenticated participant's profile."""
    out = UserOut.model_validate(current_user)
    out.is_admin = is_admin(current_user)
    return out
