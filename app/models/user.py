"""User model — a signed-in event participant."""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class Domain(str, enum.Enum):
    WEB = "web"
    APP = "app"
    RESEARCH = "research"
    CC = "cc"
    MANAGEMENT = "management"


class User(Base):
    __tablename__ = "users"

    # ── Identity ──
    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    email: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False
    )
    name: Mapped[Optional[str]] = mapped_column(String(200))
    image: Mapped[Optional[str]] = mapped_column(String(500))

    # ── OAuth ──
    oauth_provider: Mapped[Optional[str]] = mapped_column(String(20))
    oauth_id: Mapped[Optional[str]] = mapped_column(String(255))

    # ── Event data ──
    domain: Mapped[Optional[Domain]] = mapped_column(
        Enum(Domain, values_callable=lambda e: [m.value for m in e])
    )
    team_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("teams.id", ondelete="SET NULL"), index=True
    )

    # ── Timestamps ──
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # ── Relationships ──
    team: Mapped[Optional["Team"]] = relationship(  # noqa: F821
        "Team", back_populates="users"
    )
