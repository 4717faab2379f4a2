"""Data access layer for messages: inserts and keyset-paginated mailboxes."""

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from seatline.db.models import Message, Role


def insert(db: Session, message: Message) -> Message:
    db.add(message)
    db.flush()
    return message


def get_by_id(db: Session, message_id: str) -> Message | None:
    return db.get(Message, message_id)


def _page(
    db: Session,
    owner_column,
    counterpart_column,
    role_id: str,
    after: tuple[str, str] | None,
    limit: int,
) -> list[tuple[Message, Role]]:
    stmt = (
        select(Message, Role)
        .join(Role, Role.id == counterpart_column)
        .where(owner_column == role_id)
    )
    if after is not None:
        created_at, last_id = after
        # Strictly older in (created_at, id) order
        stmt = stmt.where(
            or_(
                Message.created_at < created_at,
                and_(Message.created_at == created_at, Message.id < last_id),
            )
        )
    stmt = stmt.order_by(Message.created_at.desc(), Message.id.desc()).limit(limit)
    return [(m, r) for m, r in db.execute(stmt).all()]


def list_sent(db: Session, role_id: str, after: tuple[str, str] | None, limit: int) -> list[tuple[Message, Role]]:
    """Messages sent by ``role_id``, newest first, each with its recipient."""
    return _page(db, Message.from_role_id, Message.to_role_id, role_id, after, limit)


def list_received(db: Session, role_id: str, after: tuple[str, str] | None, limit: int) -> list[tuple[Message, Role]]:
    """Messages addressed to ``role_id``, newest first, each with its sender."""
    return _page(db, Message.to_role_id, Message.from_role_id, role_id, after, limit)
