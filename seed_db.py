import asyncio

from app.database import async_session, init_models
from app.models.event_config import CONFIG_ID, EventConfig
from app.models.team import Team
from app.models.track import Track
from app.models.user import Domain, User


async def async_main():
    await init_models()

    async with async_session() as session:
        # Config
        session.add(EventConfig(id=CONFIG_ID, team_size=4, tracks_enabled=True))

        # Tracks
        t1 = Track(name="Health Tech", description="Tools for patients and clinicians.", color="#22c55e")
        t2 = Track(name="Sustainability", description="Greener campuses and cities.", color="#0ea5e9")
        session.add_all([t1, t2])
        await session.flush()

        # Teams
        session.add_all([
            Team(name="Team Alpha", track_id=t1.id),
            Team(name="Team Beta", track_id=t2.id),
            Team(name="Team Gamma"),
        ])

        # Participants (some untagged so sign-in / auto-assign tag them)
        session.add_all([
            User(email="alice@example.com", name="Alice", domain=Domain.WEB),
            User(email="bob@example.com", name="Bob", domain=Domain.APP),
            User(email="charlie@example.com", name="Charlie", domain=Domain.RESEARCH),
            User(email="diana@example.com", name="Diana"),
            User(email="eve@example.com", name="Eve"),
            User(email="frank@example.com", name="Frank", domain=Domain.WEB),
            User(email="grace@example.com", name="Grace"),
            User(email="heidi@example.com", name="Heidi", domain=Domain.RESEARCH),
            User(email="ivan@example.com", name="Ivan"),
        ])

        await session.commit()
    print("Database seeded with tracks, teams and participants.")

asyncio.run(async_main())
