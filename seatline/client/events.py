"""Server-Sent Events decoding for the live channel."""

import json
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass

import httpx

from seatline.events.streaming import EVENT_MESSAGE, EVENT_PING, EVENT_READY

logger = logging.getLogger(__name__)

KNOWN_EVENTS = {EVENT_READY, EVENT_PING, EVENT_MESSAGE}


@dataclass
class LiveEvent:
    type: str
    data: dict


class SSEDecoder:
    """Incremental decoder: feed it lines, it returns an event on each blank line."""

    def __init__(self):
        self._event = ""
        self._data: list[str] = []
        self.retry_ms: int | None = None

    def feed(self, line: str) -> LiveEvent | None:
        line = line.rstrip("\r")
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "event":
            self._event = value
        elif field == "data":
            self._data.append(value)
        elif field == "retry" and value.isdigit():
            self.retry_ms = int(value)
        return None

    def _dispatch(self) -> LiveEvent | None:
        event, data = self._event or "message", "\n".join(self._data)
        self._event, self._data = "", []
        if not data:
            return None
        if event not in KNOWN_EVENTS:
            logger.debug("Ignoring unknown live event %r", event)
            return None
        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            logger.warning("Ignoring malformed %s frame", event)
            return None
        if not isinstance(payload, dict):
            return None
        return LiveEvent(type=event, data=payload)


async def stream_events(http: httpx.AsyncClient, role_id: str) -> AsyncIterator[LiveEvent]:
    """Open the live channel for ``role_id`` and yield decoded events until it ends."""
    decoder = SSEDecoder()
    async with http.stream(
        "GET", "/api/v1/events", params={"roleId": role_id}, timeout=httpx.Timeout(10.0, read=None)
    ) as resp:
        resp.raise_for_status()
        async for line in resp.aiter_lines():
            event = decoder.feed(line)
            if event is not None:
                yield event
