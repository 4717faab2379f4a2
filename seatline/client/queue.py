"""Ordered, de-duplicated queue of incoming requests."""

from collections.abc import Iterable
from dataclasses import dataclass

from seatline.messages.schemas import ReceivedMessage, SentMessage
from seatline.utils.clock import parse_iso


@dataclass
class IncomingRequest:
    id: str
    from_role_id: str
    text: str
    created_at: str
    from_role_name: str | None = None
    from_table_id: str | None = None
    from_seat_id: int | None = None


class IncomingQueue:
    """FIFO of requests; the head is the one presented to the user."""

    def __init__(self):
        self._items: list[IncomingRequest] = []
        self._ids: set[str] = set()

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, message_id: str) -> bool:
        return message_id in self._ids

    def push(self, item: IncomingRequest) -> bool:
        if item.id in self._ids:
            return False
        self._items.append(item)
        self._ids.add(item.id)
        return True

    def merge(self, items: Iterable[IncomingRequest]) -> int:
        """Append every item not already queued, preserving the given order."""
        return sum(1 for item in items if self.push(item))

    def head(self) -> IncomingRequest | None:
        return self._items[0] if self._items else None

    def pop(self) -> IncomingRequest | None:
        if not self._items:
            return None
        item = self._items.pop(0)
        self._ids.discard(item.id)
        return item

    def items(self) -> list[IncomingRequest]:
        return list(self._items)


def select_backlog(
    received: list[ReceivedMessage], sent: list[SentMessage], watermark: str | None
) -> list[IncomingRequest]:
    """Unanswered requests newer than ``watermark``, oldest first."""
    answered = {m.in_reply_to for m in sent if m.kind == "response" and m.in_reply_to}
    floor = parse_iso(watermark) if watermark else None
    pending = [
        m
        for m in received
        if m.kind == "request"
        and m.id not in answered
        and (floor is None or parse_iso(m.created_at) > floor)
    ]
    pending.sort(key=lambda m: (parse_iso(m.created_at), m.id))
    return [
        IncomingRequest(
            id=m.id,
            from_role_id=m.from_role_id,
            text=m.text,
            created_at=m.created_at,
            from_role_name=m.sender.name,
        )
        for m in pending
    ]
