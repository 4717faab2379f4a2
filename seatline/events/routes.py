"""Live channel endpoint: a long-lived SSE stream per role."""

import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter, Query, Request
from starlette.responses import StreamingResponse

from seatline.events.broker import LiveChannelBroker, Subscription
from seatline.events.streaming import format_retry
from seatline.roles import repository as roles_repository
from seatline.utils.errors import InvalidInput, RoleNotFound

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Streaming"])

# Reconnect hint for EventSource-style clients
RETRY_MS = 3000


async def stream_subscription(
    broker: LiveChannelBroker, sub: Subscription, request: Request
) -> AsyncIterator[str]:
    """Relay a subscription's frames; always deregisters it when the transport ends."""
    try:
        yield format_retry(RETRY_MS)
        async for frame in sub.frames():
            if await request.is_disconnected():
                logger.info("Client disconnected from live channel (role %s)", sub.role_id)
                break
            yield frame
    finally:
        broker.unsubscribe(sub)


@router.get(
    "/events",
    summary="Subscribe to live events",
    description="Server-Sent Events for one role: `ready` on connect, `message` for new mail, `ping` heartbeats.",
)
async def events(request: Request, role_id: str = Query("", alias="roleId")):
    role_id = role_id.strip()
    if not role_id:
        raise InvalidInput("roleId is required", code="MISSING_FIELDS")
    with request.app.state.session_factory() as db:
        if roles_repository.get_by_id(db, role_id) is None:
            raise RoleNotFound(f"Role {role_id} not found")

    broker: LiveChannelBroker = request.app.state.broker
    sub = broker.subscribe(role_id)
    return StreamingResponse(
        stream_subscription(broker, sub, request),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive", "X-Accel-Buffering": "no"},
    )
