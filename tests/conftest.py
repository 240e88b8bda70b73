"""Shared fixtures: a throwaway SQLite database per test and an API client."""

from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.config import settings
from app.database import Base, get_db, get_session_factory
from app.main import app
from app.models.team import Team
from app.models.user import Domain, User
from app.routers.auth import COOKIE_KEY, create_access_token
from app.services.domains import DomainDirectory
from app.services.events import EventBroadcaster

ADMIN_EMAIL = "admin@example.com"


@pytest.fixture(autouse=True)
def _admin_emails(monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_EMAILS", ADMIN_EMAIL)


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def broadcaster():
    return EventBroadcaster(queue_size=10)


@pytest.fixture
def directory():
    return DomainDirectory({
        "alice@example.com": "web",
        "bob@example.com": "app",
        "carol@example.com": "research",
    })


@pytest_asyncio.fixture
async def client(session_factory, broadcaster, directory):
    async def _get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.state.broadcaster = broadcaster
    app.state.domain_directory = directory

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def login(client: AsyncClient, user: User) -> None:
    client.cookies.set(COOKIE_KEY, create_access_token({"sub": str(user.id)}))


async def make_user(
    session_factory,
    email: str,
    domain: Optional[Domain] = None,
    team_id: Optional[int] = None,
    name: Optional[str] = None,
) -> User:
    async with session_factory() as session:
        user = User(email=email, name=name or email.split("@")[0], domain=domain, team_id=team_id)
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


async def make_team(session_factory, name: str, **fields) -> Team:
    async with session_factory() as session:
        team = Team(name=name, **fields)
        session.add(team)
        await session.commit()
        await session.refresh(team)
        return team


@pytest_asyncio.fixture
async def admin(client, session_factory):
    user = await make_user(session_factory, ADMIN_EMAIL, name="Admin")
    login(client, user)
    return user
