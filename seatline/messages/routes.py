"""Message endpoints: send, sent box, inbox."""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from seatline.config.settings import Settings, app_settings
from seatline.db.client import get_db
from seatline.db.models import Message, Role
from seatline.events.broker import LiveChannelBroker
from seatline.events.streaming import EVENT_MESSAGE
from seatline.messages.schemas import ReceivedPage, SendMessageRequest, SentPage
from seatline.messages.service import build_pushes, create_message, list_received, list_sent
from seatline.utils.validators import SuccessResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Messages"])


def fan_out(broker: LiveChannelBroker, message: Message, sender: Role) -> None:
    """Push a new message to both parties' live channels (best effort)."""
    for role_id, push in build_pushes(message, sender).items():
        try:
            broker.publish(role_id, EVENT_MESSAGE, push.model_dump(mode="json", by_alias=True))
        except Exception:
            logger.warning("Live publish of message %s to role %s failed", message.id, role_id, exc_info=True)


@router.post("/messages", status_code=201, response_model=SuccessResponse, summary="Send a message", description="Create a request or a response; recipients with an open live channel get it immediately.")
async def send(body: SendMessageRequest, request: Request, db: Session = Depends(get_db)):
    message, sender = await run_in_threadpool(
        create_message,
        db,
        body.from_role_id,
        body.to_role_id,
        body.text,
        body.kind,
        body.in_reply_to,
    )
    fan_out(request.app.state.broker, message, sender)
    return SuccessResponse(data={"id": message.id})


@router.get("/roles/{role_id}/messages/sent", response_model=SentPage, response_model_exclude_none=True, summary="Sent box", description="Newest first. Pass `nextCursor` back as `cursor` for the next page.")
def sent(
    role_id: str,
    cursor: str | None = None,
    limit: int | None = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(app_settings),
):
    items, next_cursor = list_sent(db, role_id, cursor, settings.MESSAGE_PAGE_DEFAULT if limit is None else limit, settings.MESSAGE_PAGE_MAX)
    return SentPage(data=items, next_cursor=next_cursor)


@router.get("/roles/{role_id}/messages/received", response_model=ReceivedPage, response_model_exclude_none=True, summary="Inbox", description="Newest first. Pass `nextCursor` back as `cursor` for the next page.")
def received(
    role_id: str,
    cursor: str | None = None,
    limit: int | None = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(app_settings),
):
    items, next_cursor = list_received(db, role_id, cursor, settings.MESSAGE_PAGE_DEFAULT if limit is None else limit, settings.MESSAGE_PAGE_MAX)
    return ReceivedPage(data=items, next_cursor=next_cursor)
