"""
Live event fan-out to every connected dashboard (Server-Sent Events).

One :class:`EventBroadcaster` is created at application start-up and kept on
``app.state``. Each connected client holds a :class:`Subscription` with its
own bounded queue; :meth:`EventBroadcaster.publish` serializes an event once
and pushes it to every subscriber with ``put_nowait`` so a slow client never
blocks the others. There is no replay: a subscriber only sees the
``connected`` acknowledgement and what is published after it joined.
"""

from __future__ import annotations

import asyncio
import enum
import itertools
import json
import logging
import threading
from typing import Any, List, Optional, Set, Union

from fastapi import Request
from pydantic import BaseModel, ValidationError
from pydantic_core import PydanticSerializationError

logger = logging.getLogger(__name__)

CONNECTED = "connected"
SSE_KEEPALIVE = ": keepalive\n\n"


class EventType(str, enum.Enum):
    TEAM_ASSIGNED = "team-assigned"
    TEAM_UPDATED = "team-updated"
    IDEA_SUBMITTED = "idea-submitted"
    DEADLINE_UPDATED = "deadline-updated"
    EVENT_STARTED = "event-started"
    EVENT_ENDED = "event-ended"


class Event(BaseModel):
    """A typed notification; ``data`` is opaque to the broadcaster."""

    type: EventType
    data: Any = None


class EventSerializationError(ValueError):
    """The event payload could not be turned into JSON."""


def serialize_event(event: Union[Event, dict]) -> str:
    """Validate and JSON-encode an event, raising before anything is delivered."""
    try:
        if not isinstance(event, Event):
            event = Event.model_validate(event)
        return event.model_dump_json()
    except ValidationError as e:
        raise EventSerializationError(f"Invalid event: {e}") from e
    except (PydanticSerializationError, TypeError, ValueError) as e:
        raise EventSerializationError(f"Event payload is not serializable: {e}") from e


def format_sse(message: str) -> str:
    """Render one serialized event as an SSE ``data:`` frame."""
    return f"data: {message}\n\n"


class Subscription:
    """Handle for one connected client."""

    _ids = itertools.count(1)

    def __init__(self, maxsize: int):
        self.id = next(self._ids)
        self.queue: asyncio.Queue[str] = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    async def get(self, timeout: Optional[float] = None) -> Optional[str]:
        """Next serialized event, or None on timeout."""
        if timeout is None:
            return await self.queue.get()
        try:
            return await asyncio.wait_for(self.queue.get(), timeout)
        except asyncio.TimeoutError:
            return None

    def drain(self) -> List[str]:
        """Everything currently queued, without waiting."""
        items = []
        while not self.queue.empty():
            items.append(self.queue.get_nowait())
        return items

    def __repr__(self):
        return f"Subscription(id={self.id}, pending={self.queue.qsize()}, closed={self.closed})"


class EventBroadcaster:
    """
    Fan-out broadcaster for structured domain events.

    The subscriber set is guarded by a lock and copied before delivery, so
    subscribing or unsubscribing during a publish never changes who receives
    that event. Queues are plain :class:`asyncio.Queue` objects, which are not
    thread-safe: :meth:`publish` must run on the event loop that serves the
    streams. Code on another thread hands off with
    ``loop.call_soon_threadsafe(broadcaster.publish, event)``.
    """

    def __init__(self, queue_size: int = 100):
        self._queue_size = queue_size
        self._subscribers: Set[Subscription] = set()
        self._lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self) -> Subscription:
        """Register a new client; its first message is the ``connected`` acknowledgement."""
        subscription = Subscription(self._queue_size)
        subscription.queue.put_nowait(serialize_event_type(CONNECTED))
        with self._lock:
            self._subscribers.add(subscription)
            total = len(self._subscribers)
        logger.info(f"EventBroadcaster: {subscription} connected (total={total})")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a client. Calling it again for the same handle does nothing."""
        with self._lock:
            present = subscription in self._subscribers
            self._subscribers.discard(subscription)
            total = len(self._subscribers)
        subscription.closed = True
        if present:
            logger.info(f"EventBroadcaster: {subscription} disconnected (total={total})")

    def publish(self, event: Union[Event, dict]) -> int:
        """
        Deliver ``event`` to every current subscriber.

        Returns the number of subscribers the event was queued for. A client
        that is gone or too far behind silently misses the event.
        Call it from the event loop thread only.
        """
        message = serialize_event(event)
        with self._lock:
            subscribers = list(self._subscribers)

        delivered = 0
        for subscription in subscribers:
            if subscription.closed:
                continue
            try:
                subscription.queue.put_nowait(message)
                delivered += 1
            except asyncio.QueueFull:
                logger.debug(f"EventBroadcaster: {subscription} queue full, dropping event")
        logger.info(f"EventBroadcaster: published {message[:80]} to {delivered}/{len(subscribers)}")
        return delivered

    def close(self) -> None:
        """Detach every subscriber (application shutdown)."""
        with self._lock:
            subscribers = list(self._subscribers)
            self._subscribers.clear()
        for subscription in subscribers:
            subscription.closed = True
        logger.info(f"EventBroadcaster: closed ({len(subscribers)} subscribers detached)")


def serialize_event_type(event_type: str, data: Any = None) -> str:
    """Serialize a broadcaster-internal message such as ``connected``."""
    payload = {"type": event_type}
    if data is not None:
        payload["data"] = data
    return json.dumps(payload, separators=(",", ":"))


def get_broadcaster(request: Request) -> EventBroadcaster:
    """FastAPI dependency: the process-wide broadcaster created in the lifespan."""
    return request.app.state.broadcaster
