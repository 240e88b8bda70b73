"""Team model — members, track and submitted idea."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class Team(Base):
    __tablename__ = "teams"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    track_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("tracks.id", ondelete="SET NULL")
    )

    # ── Idea submission ──
    idea_title: Mapped[Optional[str]] = mapped_column(String(300))
    idea_description: Mapped[Optional[str]] = mapped_column(Text)
    idea_link: Mapped[Optional[str]] = mapped_column(String(500))
    is_submitted: Mapped[bool] = mapped_column(Boolean, default=False)
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # ── Relationships ──
    users: Mapped[List["User"]] = relationship(  # noqa: F821
        "User", back_populates="team", order_by="User.id"
    )
    track: Mapped[Optional["Track"]] = relationship(  # noqa: F821
        "Track", back_populates="teams"
    )
