"""
Ideathon Hub — FastAPI application entry-point.

Run with:
    uvicorn app.main:app --reload
"""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.middleware.sessions import SessionMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from app.config import settings
from app.database import get_db, init_models
from app.models.team import Team
from app.models.user import User

# ── Import routers ──
from app.routers import admin, auth, config, events, teams, users
from app.services.domains import DomainDirectory
from app.services.events import EventBroadcaster


# ── Lifespan: create tables, build the process-wide broadcaster ──
@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_models()
    app.state.broadcaster = EventBroadcaster(queue_size=settings.SSE_QUEUE_SIZE)
    app.state.domain_directory = DomainDirectory.from_file(settings.DOMAIN_MAP_PATH)
    yield
    app.state.broadcaster.close()


app = FastAPI(
    title=settings.APP_NAME,
    description="Ideathon event management — teams, tracks, ideas and live updates.",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Session middleware (required for OAuth state) ──
app.add_middleware(SessionMiddleware, secret_key=settings.SECRET_KEY, https_only=not settings.DEBUG)
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=("*",))


# ── Validation errors surface as 400 with the first message ──
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid input") if errors else "Invalid input"
    return JSONResponse(
        status_code=400,
        content={
            "detail": message.removeprefix("Value error, "),
            "errors": [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in errors],
        },
    )


# ── Register API routers ──
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(teams.router)
app.include_router(admin.router)
app.include_router(config.router)
app.include_router(events.router)


# ── Landing page ──
@app.get("/")
async def homepage(request: Request, db: AsyncSession = Depends(get_db)):
    users_count = (await db.execute(select(func.count(User.id)))).scalar() or 0
    teams_count = (await db.execute(select(func.count(Team.id)))).scalar() or 0
    return {
        "app": settings.APP_NAME,
        "stats": {
            "participants": users_count,
            "teams": teams_count,
            "live_connections": request.app.state.broadcaster.subscriber_count,
        },
    }
