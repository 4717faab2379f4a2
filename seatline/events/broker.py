"""Live channel broker: per-role subscriber registry with best-effort fan-out.

One broker is built per application and kept on ``app.state.broker``. Nothing
here is persisted and nothing is retried: a subscriber that cannot take a
frame right now is considered dead and dropped, and the recipient catches up
through the REST mailbox instead.
"""

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator

from seatline.events.streaming import format_event, format_ping, format_ready

logger = logging.getLogger(__name__)


class SubscriptionClosed(Exception):
    pass


class Subscription:
    """One open live channel (e.g. one browser tab) for a role."""

    def __init__(self, role_id: str, max_pending: int):
        self.id = uuid.uuid4().hex[:12]
        self.role_id = role_id
        self.alive = True
        self._queue: asyncio.Queue[str | None] = asyncio.Queue(maxsize=max_pending)
        self._heartbeat: asyncio.Task | None = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def write(self, frame: str) -> None:
        """Queue a frame for the transport.

        Raises SubscriptionClosed or asyncio.QueueFull when the frame cannot be taken.
        """
        if not self.alive:
            raise SubscriptionClosed(self.id)
        self._queue.put_nowait(frame)

    def close(self) -> None:
        if not self.alive:
            return
        self.alive = False
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(None)

    async def frames(self) -> AsyncIterator[str]:
        """Yield queued frames until the subscription is closed."""
        while True:
            frame = await self._queue.get()
            if frame is None:
                return
            yield frame


class LiveChannelBroker:
    def __init__(self, heartbeat_interval: float = 15.0, max_pending: int = 64):
        self.heartbeat_interval = heartbeat_interval
        self.max_pending = max_pending
        self._subs: dict[str, set[Subscription]] = {}

    def subscribe(self, role_id: str) -> Subscription:
        """Register a new channel for ``role_id``; must be called on the running loop."""
        sub = Subscription(role_id, self.max_pending)
        self._subs.setdefault(role_id, set()).add(sub)
        sub.write(format_ready(role_id, sub.id))
        sub._heartbeat = asyncio.get_running_loop().create_task(self._heartbeat_loop(sub))
        logger.info("Live subscriber %s connected for role %s (%d open)", sub.id, role_id, len(self._subs[role_id]))
        return sub

    async def _heartbeat_loop(self, sub: Subscription) -> None:
        while sub.alive:
            await asyncio.sleep(self.heartbeat_interval)
            try:
                sub.write(format_ping())
            except (asyncio.QueueFull, SubscriptionClosed):
                logger.info("Heartbeat failed for subscriber %s (role %s), dropping", sub.id, sub.role_id)
                self.unsubscribe(sub)
                return

    def publish(self, role_id: str, event: str, payload: dict) -> int:
        """Write an event to every live channel of ``role_id``.

        Returns how many channels accepted it. Never raises for a broken
        subscriber; that subscriber is removed and the rest still receive it.
        """
        subs = self._subs.get(role_id)
        if not subs:
            return 0
        frame = format_event(event, payload)
        delivered = 0
        for sub in list(subs):
            try:
                sub.write(frame)
                delivered += 1
            except (asyncio.QueueFull, SubscriptionClosed):
                logger.warning("Dropping dead subscriber %s for role %s", sub.id, role_id)
                self.unsubscribe(sub)
        return delivered

    def unsubscribe(self, sub: Subscription) -> None:
        """Deregister a channel, stop its heartbeat and close it. Idempotent."""
        subs = self._subs.get(sub.role_id)
        if subs is not None:
            subs.discard(sub)
            if not subs:
                del self._subs[sub.role_id]
        task, sub._heartbeat = sub._heartbeat, None
        if task is not None and not task.done():
            task.cancel()
        if sub.alive:
            logger.debug("Live subscriber %s for role %s closed", sub.id, sub.role_id)
        sub.close()

    def drop_role(self, role_id: str) -> int:
        """Close every live channel of ``role_id`` (the role signed out). Returns how many."""
        subs = list(self._subs.get(role_id, ()))
        for sub in subs:
            self.unsubscribe(sub)
        if subs:
            logger.info("Closed %d live subscriber(s) for removed role %s", len(subs), role_id)
        return len(subs)

    def subscriber_count(self, role_id: str | None = None) -> int:
        if role_id is not None:
            return len(self._subs.get(role_id, ()))
        return sum(len(s) for s in self._subs.values())

    def has_role(self, role_id: str) -> bool:
        return role_id in self._subs

    def close(self) -> None:
        """Close every channel (application shutdown)."""
        for subs in list(self._subs.values()):
            for sub in list(subs):
                self.unsubscribe(sub)
