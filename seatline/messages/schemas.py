"""Pydantic schemas for message requests, mailbox pages and live pushes."""

from typing import Literal

from pydantic import Field

from seatline.roles.schemas import RoleRef
from seatline.utils.validators import CamelModel

MessageKind = Literal["request", "response"]


class SendMessageRequest(CamelModel):
    from_role_id: str
    to_role_id: str
    text: str
    kind: MessageKind = "request"
    in_reply_to: str | None = None


class MessageResponse(CamelModel):
    id: str
    from_role_id: str
    to_role_id: str
    text: str
    kind: MessageKind
    in_reply_to: str | None = None
    created_at: str


class SentMessage(MessageResponse):
    recipient: RoleRef = Field(alias="to")


class ReceivedMessage(MessageResponse):
    sender: RoleRef = Field(alias="from")


class SentPage(CamelModel):
    status: str = "success"
    data: list[SentMessage]
    next_cursor: str | None = None


class ReceivedPage(CamelModel):
    status: str = "success"
    data: list[ReceivedMessage]
    next_cursor: str | None = None


class PushMessage(MessageResponse):
    """Payload of a live ``message`` event."""

    dir: Literal["in", "out"]
    from_role_name: str | None = None
    from_table_id: str | None = None
    from_seat_id: int | None = None
