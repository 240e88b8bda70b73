"""Live events router — SSE stream for dashboards + admin broadcast."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from app.config import settings
from app.models.user import User
from app.routers.auth import require_admin
from app.services.events import (
    SSE_KEEPALIVE,
    Event,
    EventBroadcaster,
    EventSerializationError,
    format_sse,
    get_broadcaster,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/events", tags=["events"])

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def _event_stream(request: Request, broadcaster: EventBroadcaster):
    subscription = broadcaster.subscribe()
    try:
        while not subscription.closed:
            message = await subscription.get(timeout=settings.SSE_KEEPALIVE_SECONDS)
            if await request.is_disconnected():
                break
            if message is None:
                yield SSE_KEEPALIVE
                continue
            yield format_sse(message)
    finally:
        broadcaster.unsubscribe(subscription)


@router.get("")
async def stream_events(
    request: Request,
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    """Open a long-lived Server-Sent Events stream of every published event."""
    return StreamingResponse(
        _event_stream(request, broadcaster),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.post("")
async def broadcast_event(
    event: Event,
    admin: User = Depends(require_admin),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    """Broadcast an arbitrary event to all connected clients."""
    try:
        delivered = broadcaster.publish(event)
    except EventSerializationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info(f"Admin {admin.id} broadcast {event.type.value} to {delivered} clients")
    return {"success": True, "delivered": delivered}
