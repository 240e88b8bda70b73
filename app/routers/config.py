"""Public event configuration — deadline and event state for dashboards."""

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models.event_config import CONFIG_ID, EventConfig
from app.schemas.config import PublicConfigOut

router = APIRouter(prefix="/api/config", tags=["config"])


@router.get("", response_model=PublicConfigOut)
async def read_public_config(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(EventConfig).where(EventConfig.id == CONFIG_ID))
    config = result.scalar_one_or_none()
    if config is None:
        return PublicConfigOut()
    return config
