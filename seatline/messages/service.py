"""Message business logic: validated creation, reply linkage and mailbox pages."""

import logging
import uuid

from sqlalchemy.orm import Session

from seatline.db.client import transaction
from seatline.db.models import KIND_REQUEST, VALID_KINDS, Message, Role
from seatline.messages import repository
from seatline.messages.cursor import decode_cursor, encode_cursor
from seatline.messages.schemas import PushMessage, ReceivedMessage, SentMessage
from seatline.roles import repository as roles_repository
from seatline.roles.schemas import RoleRef
from seatline.utils.clock import utc_now_iso
from seatline.utils.errors import InvalidInput, MessageNotFound, RoleNotFound
from seatline.utils.validators import clamp

logger = logging.getLogger(__name__)

PAGE_MIN = 1
PAGE_MAX = 100
PAGE_DEFAULT = 20


def _validate_reply(db: Session, kind: str, in_reply_to: str | None, from_role_id: str, to_role_id: str) -> None:
    """A response must answer a request that its recipient sent to its sender."""
    if kind == KIND_REQUEST:
        if in_reply_to:
            raise InvalidInput("A request cannot reply to another message", code="INVALID_REPLY")
        return
    if not in_reply_to:
        raise InvalidInput("A response must name the request it answers", code="INVALID_REPLY")
    original = repository.get_by_id(db, in_reply_to)
    if original is None:
        raise MessageNotFound(f"Message {in_reply_to} not found")
    if original.kind != KIND_REQUEST:
        raise InvalidInput("Only requests can be answered", code="INVALID_REPLY")
    if original.from_role_id != to_role_id or original.to_role_id != from_role_id:
        raise InvalidInput("The request was not sent to this responder", code="INVALID_REPLY")


def create_message(
    db: Session,
    from_role_id: str,
    to_role_id: str,
    text: str,
    kind: str = KIND_REQUEST,
    in_reply_to: str | None = None,
) -> tuple[Message, Role]:
    """Store a message and return it with its sender.

    The id and ``created_at`` are assigned here, never taken from the caller,
    so message order always matches storage order.
    """
    text = (text or "").strip()
    if not from_role_id or not to_role_id or not text:
        raise InvalidInput("fromRoleId, toRoleId and non-empty text are required", code="MISSING_FIELDS")
    if kind not in VALID_KINDS:
        raise InvalidInput(f"Unknown message kind {kind!r}")

    with transaction(db):
        roles = roles_repository.get_many(db, {from_role_id, to_role_id})
        for role_id in (from_role_id, to_role_id):
            if role_id not in roles:
                raise RoleNotFound(f"Role {role_id} not found")
        _validate_reply(db, kind, in_reply_to or None, from_role_id, to_role_id)

        message = repository.insert(
            db,
            Message(
                id=uuid.uuid4().hex,
                from_role_id=from_role_id,
                to_role_id=to_role_id,
                text=text,
                kind=kind,
                in_reply_to=in_reply_to or None,
                created_at=utc_now_iso(),
            ),
        )

    logger.info("Message %s (%s) %s -> %s", message.id, kind, from_role_id, to_role_id)
    return message, roles[from_role_id]


def _page_args(cursor: str | None, limit: int | None, max_limit: int) -> tuple[tuple[str, str] | None, int]:
    after = decode_cursor(cursor) if cursor else None
    return after, clamp(limit, PAGE_MIN, max_limit, PAGE_DEFAULT)


def _next_cursor(items: list, limit: int) -> str | None:
    if len(items) < limit:
        return None
    last = items[-1]
    return encode_cursor(last.created_at, last.id)


def list_sent(
    db: Session, role_id: str, cursor: str | None = None, limit: int | None = None, max_limit: int = PAGE_MAX
) -> tuple[list[SentMessage], str | None]:
    after, limit = _page_args(cursor, limit, max_limit)
    rows = repository.list_sent(db, role_id, after, limit)
    items = [
        SentMessage(
            **_message_fields(m),
            recipient=RoleRef(id=r.id, name=r.name),
        )
        for m, r in rows
    ]
    return items, _next_cursor(items, limit)


def list_received(
    db: Session, role_id: str, cursor: str | None = None, limit: int | None = None, max_limit: int = PAGE_MAX
) -> tuple[list[ReceivedMessage], str | None]:
    after, limit = _page_args(cursor, limit, max_limit)
    rows = repository.list_received(db, role_id, after, limit)
    items = [
        ReceivedMessage(
            **_message_fields(m),
            sender=RoleRef(id=r.id, name=r.name),
        )
        for m, r in rows
    ]
    return items, _next_cursor(items, limit)


def _message_fields(message: Message) -> dict:
    return {
        "id": message.id,
        "from_role_id": message.from_role_id,
        "to_role_id": message.to_role_id,
        "text": message.text,
        "kind": message.kind,
        "in_reply_to": message.in_reply_to,
        "created_at": message.created_at,
    }


def build_pushes(message: Message, sender: Role) -> dict[str, PushMessage]:
    """Live payloads keyed by the role that should receive them."""
    fields = {
        **_message_fields(message),
        "from_role_name": sender.name,
        "from_table_id": sender.table_id,
        "from_seat_id": sender.seat_id,
    }
    pushes = {message.to_role_id: PushMessage(**fields, dir="in")}
    if message.from_role_id != message.to_role_id:
        pushes[message.from_role_id] = PushMessage(**fields, dir="out")
    return pushes

