"""EventConfig model — singleton row with the admin-controlled settings."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base

CONFIG_ID = "singleton"


class EventConfig(Base):
    __tablename__ = "config"

    id: Mapped[str] = mapped_column(String(20), primary_key=True, default=CONFIG_ID)
    team_size: Mapped[int] = mapped_column(Integer, default=5)
    deadline: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    event_started: Mapped[bool] = mapped_column(Boolean, default=False)
    event_ended: Mapped[bool] = mapped_column(Boolean, default=False)
    tracks_enabled: Mapped[bool] = mapped_column(Boolean, default=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
