"""
Ideathon Hub – async engine, session factory and declarative base.

Routers get one session per request through :func:`get_db`. Services that
write participant by participant (auto-assignment, domain tagging) take the
session factory from :func:`get_session_factory` and open a short session
per write so one failure never rolls back the rest.
"""

from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.config import settings

# ── Engine ──
engine_kwargs = {"echo": settings.DEBUG}

if settings.DATABASE_URL.startswith("sqlite"):
    # Wait on a locked file instead of failing at once.
    engine_kwargs["connect_args"] = {"timeout": 15}
elif "postgresql" in settings.DATABASE_URL:
    # PgBouncer in transaction mode does not support prepared statement caching.
    engine_kwargs["connect_args"] = {"statement_cache_size": 0}

engine = create_async_engine(settings.DATABASE_URL, **engine_kwargs)

if engine.dialect.name == "sqlite":
    @event.listens_for(engine.sync_engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

# ── Session factory ──
async_session = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def init_models() -> None:
    """Create every table that does not exist yet."""
    from app import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# ── FastAPI dependencies ──
async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield a request-scoped session; committed on success, rolled back on error."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_session_factory() -> async_sessionmaker:
    return async_session
