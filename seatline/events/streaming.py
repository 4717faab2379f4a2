"""SSE event formatting utilities for the live channel."""

import json

from seatline.utils.clock import utc_now_iso

EVENT_READY = "ready"
EVENT_PING = "ping"
EVENT_MESSAGE = "message"


def _sse(event: str, data: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(data, separators=(',', ':'))}\n\n"


def format_event(event: str, data: dict) -> str:
    return _sse(event, data)


def format_retry(milliseconds: int) -> str:
    return f"retry: {milliseconds}\n\n"


def format_ready(role_id: str, subscription_id: str) -> str:
    return _sse(EVENT_READY, {"type": EVENT_READY, "roleId": role_id, "subscriptionId": subscription_id})


def format_ping() -> str:
    return _sse(EVENT_PING, {"type": EVENT_PING, "ts": utc_now_iso()})
