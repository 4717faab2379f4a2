"""Role lifecycle: every seat change happens in the same transaction as the role write."""

import logging
import uuid

from sqlalchemy.orm import Session

from seatline.db.client import transaction
from seatline.db.models import Role
from seatline.roles import repository
from seatline.roles.schemas import CreateRoleRequest, UpdateRoleRequest
from seatline.seats.occupancy import claim_seat, move_seat
from seatline.utils.clock import utc_now_iso
from seatline.utils.errors import InvalidInput, RoleExists, RoleNotFound
from seatline.utils.validators import clamp

logger = logging.getLogger(__name__)

ROLE_LIST_LIMIT = 20


def _require_text(value: str | None, field: str) -> str:
    text = (value or "").strip()
    if not text:
        raise InvalidInput(f"{field} is required", code="MISSING_FIELDS")
    return text


def create_role(db: Session, body: CreateRoleRequest) -> Role:
    name = _require_text(body.name, "name")
    avatar = _require_text(body.avatar, "avatar")
    table_id = _require_text(body.table_id, "tableId")
    role_id = (body.id or "").strip() or uuid.uuid4().hex[:12]
    signals = [str(s) for s in body.signals]

    with transaction(db):
        if repository.get_by_id(db, role_id) is not None:
            raise RoleExists(f"Role {role_id} already exists")
        claim_seat(db, table_id, body.seat_id, role_id)
        role = Role(
            id=role_id,
            name=name,
            avatar=avatar,
            signals=signals,
            table_id=table_id,
            seat_id=body.seat_id,
            created_at=utc_now_iso(),
        )
        db.add(role)
        db.flush()
        repository.replace_signals(db, role_id, signals)

    logger.info("Role %s seated at table %s seat %d", role_id, table_id, body.seat_id)
    return role


def get_role(db: Session, role_id: str) -> Role:
    role = repository.get_by_id(db, role_id)
    if role is None:
        raise RoleNotFound(f"Role {role_id} not found")
    return role


def list_roles(db: Session, search: str = "") -> list[Role]:
    return repository.list_by_name(db, search.strip(), ROLE_LIST_LIMIT)


def update_role(db: Session, role_id: str, body: UpdateRoleRequest) -> Role:
    with transaction(db):
        role = repository.get_by_id(db, role_id, lock=True)
        if role is None:
            raise RoleNotFound(f"Role {role_id} not found")

        if body.table_id is not None or body.seat_id is not None:
            move_seat(
                db,
                role,
                body.table_id if body.table_id is not None else role.table_id,
                body.seat_id if body.seat_id is not None else role.seat_id,
            )
        if body.name is not None:
            role.name = _require_text(body.name, "name")
        if body.avatar is not None:
            role.avatar = _require_text(body.avatar, "avatar")
        if body.signals is not None:
            role.signals = [str(s) for s in body.signals]
            repository.replace_signals(db, role.id, role.signals)
    return role


def update_signals(db: Session, role_id: str, signals: list[str]) -> Role:
    return update_role(db, role_id, UpdateRoleRequest(signals=signals))


def delete_role(db: Session, role_id: str) -> bool:
    """Sign a role out. Idempotent: returns False when there was nothing to delete."""
    with transaction(db):
        role = repository.get_by_id(db, role_id, lock=True)
        if role is None:
            return False
        repository.delete_cascade(db, role)
    logger.info("Role %s signed out, seat %s/%d released", role_id, role.table_id, role.seat_id)
    return True


def search_signals(db: Session, q: str, limit: int | None, default_limit: int = 30) -> list[Role]:
    terms = [t.lower() for t in q.split()]
    if not terms:
        return []
    return repository.search_by_signal(db, terms, clamp(limit, 1, 100, default_limit))
