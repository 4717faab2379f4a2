"""Incoming-request session: live pushes plus backlog catch-up for one role.

The session keeps a single FIFO of requests addressed to the local role. Live
``message`` pushes land at the tail as they arrive; after every (re)connect the
backlog of unanswered requests newer than the persisted watermark is merged in,
de-duplicated by message id. The user acts on the head only.
"""

import asyncio
import enum
import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass

import httpx

from seatline.client.api import ApiError, SeatlineClient
from seatline.client.events import LiveEvent, stream_events
from seatline.client.polling import PollSchedule
from seatline.client.queue import IncomingQueue, IncomingRequest, select_backlog
from seatline.client.watermark import WatermarkStore
from seatline.config.settings import ClientSettings, get_client_settings
from seatline.events.streaming import EVENT_MESSAGE, EVENT_READY

logger = logging.getLogger(__name__)

ACCEPT_TEXT = "Sure."
DECLINE_TEXT = "Sorry, I can't help right now."

# Failures a reconcile or listener pass may hit without ending the session
ROUTINE_ERRORS = (ApiError, httpx.HTTPError)

# Marker for "use the stored watermark"
_STORED = object()


class SessionState(str, enum.Enum):
    IDLE = "idle"
    SUBSCRIBED = "subscribed"
    RECEIVING = "receiving"
    RECONCILING = "reconciling"
    CLOSED = "closed"


@dataclass
class Notice:
    """A transient notification for the user (an answer arrived, or an action failed)."""

    kind: str
    text: str
    message_id: str | None = None


EventSource = Callable[[httpx.AsyncClient, str], AsyncIterator[LiveEvent]]


class IncomingRequestSession:
    def __init__(
        self,
        client: SeatlineClient,
        role_id: str,
        watermarks: WatermarkStore,
        schedule: PollSchedule | None = None,
        backlog_limit: int = 200,
        event_source: EventSource = stream_events,
    ):
        self.client = client
        self.role_id = role_id
        self.watermarks = watermarks
        self.schedule = schedule or PollSchedule()
        self.backlog_limit = backlog_limit
        self.event_source = event_source

        self.state = SessionState.IDLE
        self.queue = IncomingQueue()
        self.notices: list[Notice] = []
        self._senders: dict[str, dict] = {}
        self._listener: asyncio.Task | None = None
        self._reconcile: asyncio.Task | None = None
        self._pending_floor: str | None = None
        self._wake = asyncio.Event()

    # --- lifecycle ---

    async def start(self) -> None:
        """Open the live channel and start the first backlog pass alongside it."""
        if self.state is not SessionState.IDLE:
            return
        self.state = SessionState.SUBSCRIBED
        self._listener = asyncio.create_task(self._listen())
        self.schedule_reconcile()

    async def close(self) -> None:
        self.state = SessionState.CLOSED
        self._wake.set()
        tasks = [t for t in (self._listener, self._reconcile) if t is not None and not t.done()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._listener = self._reconcile = None

    def set_visible(self, visible: bool) -> None:
        """Track page visibility; becoming visible cuts any pending reconnect wait short."""
        self.schedule = self.schedule.on_visibility(visible)
        if visible:
            self.schedule = self.schedule.on_success()
            self._wake.set()

    # --- live channel ---

    async def _listen(self) -> None:
        while self.state is not SessionState.CLOSED:
            try:
                async for event in self.event_source(self.client.http, self.role_id):
                    if event.type == EVENT_READY:
                        self.schedule = self.schedule.on_success()
                        # Anything pushed while disconnected is only in the backlog
                        self.schedule_reconcile()
                    self.handle_event(event)
            except ROUTINE_ERRORS as exc:
                logger.warning("Live channel for role %s failed: %s", self.role_id, exc)
            self.schedule = self.schedule.on_failure()
            if self.state is SessionState.CLOSED:
                return
            await self._pause(self.schedule.delay)

    async def _pause(self, delay: float) -> None:
        """Sleep before reconnecting, or until :meth:`set_visible` wakes the listener."""
        logger.info("Reconnecting live channel for role %s in %.1fs", self.role_id, delay)
        self._wake.clear()
        try:
            await asyncio.wait_for(self._wake.wait(), delay)
        except asyncio.TimeoutError:
            pass

    def handle_event(self, event: LiveEvent) -> None:
        if event.type != EVENT_MESSAGE:
            return
        data = event.data
        if data.get("dir") != "in" or data.get("toRoleId") != self.role_id:
            return
        if data.get("kind") == "response":
            name = data.get("fromRoleName") or data.get("fromRoleId")
            self.notices.append(Notice("response", f"{name} replied: {data.get('text', '')}", data.get("id")))
            return
        if data.get("kind") != "request" or not data.get("id") or not data.get("createdAt"):
            return
        self.queue.push(
            IncomingRequest(
                id=data["id"],
                from_role_id=data["fromRoleId"],
                text=data.get("text", ""),
                created_at=data["createdAt"],
                from_role_name=data.get("fromRoleName"),
                from_table_id=data.get("fromTableId"),
                from_seat_id=data.get("fromSeatId"),
            )
        )
        self.watermarks.advance(self.role_id, data["createdAt"])
        if self.state is SessionState.SUBSCRIBED:
            self.state = SessionState.RECEIVING

    # --- backlog ---

    def schedule_reconcile(self) -> asyncio.Task:
        """Start a backlog pass, aborting one that is still in flight.

        The watermark floor is captured now, so live pushes handled while the
        pass is fetching cannot hide requests missed during a disconnect. An
        aborted pass hands its (older) floor on to the one replacing it.
        """
        floor = self.watermarks.get(self.role_id)
        if self._reconcile is not None and not self._reconcile.done():
            self._reconcile.cancel()
            floor = self._pending_floor
        self._pending_floor = floor
        self._reconcile = asyncio.create_task(self.reconcile(floor))
        return self._reconcile

    async def reconcile(self, floor=_STORED) -> int:
        """Merge unanswered backlog requests newer than ``floor`` into the queue.

        ``floor`` defaults to the stored watermark, read before fetching.
        Returns how many requests were added.
        """
        if self.state is SessionState.CLOSED:
            return 0
        if floor is _STORED:
            floor = self.watermarks.get(self.role_id)
        self.state = SessionState.RECONCILING
        fetches = [
            asyncio.ensure_future(self.client.fetch_recent(self.role_id, "received", self.backlog_limit)),
            asyncio.ensure_future(self.client.fetch_recent(self.role_id, "sent", self.backlog_limit)),
        ]
        try:
            done, _ = await asyncio.wait(fetches, return_when=asyncio.FIRST_EXCEPTION)
            for task in done:
                if task.exception() is not None:
                    raise task.exception()
            received, sent = (task.result() for task in fetches)
        except ROUTINE_ERRORS as exc:
            logger.info("Backlog reconcile for role %s failed: %s", self.role_id, exc)
            return 0
        finally:
            for task in fetches:
                task.cancel()
            if self.state is SessionState.RECONCILING:
                self.state = SessionState.RECEIVING

        backlog = select_backlog(received, sent, floor)
        added = self.queue.merge(backlog)
        if added:
            logger.info("Queued %d backlog request(s) for role %s", added, self.role_id)
        return added

    # --- the head ---

    async def sender(self, role_id: str) -> dict | None:
        """Sender metadata, fetched once per role and cached."""
        if role_id not in self._senders:
            try:
                self._senders[role_id] = await self.client.get_role(role_id)
            except ROUTINE_ERRORS as exc:
                logger.info("Could not load sender %s: %s", role_id, exc)
                return None
        return self._senders[role_id]

    async def current(self) -> IncomingRequest | None:
        """The head, with sender name and seat filled in when known."""
        head = self.queue.head()
        if head is None or head.from_table_id is not None:
            return head
        meta = await self.sender(head.from_role_id)
        if meta:
            head.from_role_name = head.from_role_name or meta.get("name")
            head.from_table_id = meta.get("tableId")
            head.from_seat_id = meta.get("seatId")
        return head

    async def accept(self) -> str | None:
        return await self._respond(ACCEPT_TEXT)

    async def decline(self) -> str | None:
        return await self._respond(DECLINE_TEXT)

    def ignore(self) -> IncomingRequest | None:
        head = self.queue.pop()
        if head is not None:
            self.watermarks.advance(self.role_id, head.created_at)
        return head

    async def _respond(self, text: str) -> str | None:
        head = self.queue.head()
        if head is None:
            return None
        try:
            message_id = await self.client.create_message(
                self.role_id, head.from_role_id, text, kind="response", in_reply_to=head.id
            )
        except ROUTINE_ERRORS as exc:
            logger.warning("Reply to %s failed: %s", head.id, exc)
            self.notices.append(Notice("error", f"Could not send reply: {exc}", head.id))
            return None
        if self.queue.head() is head:
            self.queue.pop()
        self.watermarks.advance(self.role_id, head.created_at)
        return message_id


def open_session(role_id: str, settings: ClientSettings | None = None) -> IncomingRequestSession:
    """Build a session for ``role_id`` from client settings (env prefix ``SEATLINE_CLIENT_``)."""
    settings = settings or get_client_settings()
    schedule = PollSchedule(
        base=settings.POLL_BASE_SECONDS,
        multiplier=settings.POLL_BACKOFF,
        cap=settings.POLL_MAX_SECONDS,
        hidden_factor=settings.POLL_HIDDEN_FACTOR,
    )
    return IncomingRequestSession(
        SeatlineClient(settings.API_BASE_URL),
        role_id,
        WatermarkStore(settings.WATERMARK_FILE),
        schedule=schedule,
        backlog_limit=settings.BACKLOG_LIMIT,
    )
