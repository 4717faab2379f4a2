"""Data access layer for roles and the derived signal index."""

from sqlalchemy import delete, exists, or_, select
from sqlalchemy.orm import Session

from seatline.db.models import Message, Role, RoleSignal
from seatline.seats.occupancy import release_seat
from seatline.utils.validators import normalize_signals


def get_by_id(db: Session, role_id: str, lock: bool = False) -> Role | None:
    stmt = select(Role).where(Role.id == role_id)
    if lock:
        stmt = stmt.with_for_update()
    return db.execute(stmt).scalar_one_or_none()


def get_many(db: Session, role_ids: set[str]) -> dict[str, Role]:
    if not role_ids:
        return {}
    rows = db.execute(select(Role).where(Role.id.in_(role_ids))).scalars()
    return {r.id: r for r in rows}


def list_by_name(db: Session, search: str = "", limit: int = 20) -> list[Role]:
    stmt = select(Role)
    if search:
        stmt = stmt.where(Role.name.icontains(search, autoescape=True))
    return list(db.execute(stmt.order_by(Role.created_at.desc()).limit(limit)).scalars())


def replace_signals(db: Session, role_id: str, signals: list[str]) -> None:
    """Rebuild the signal index rows for a role from its full signal list."""
    db.execute(delete(RoleSignal).where(RoleSignal.role_id == role_id))
    db.add_all(RoleSignal(role_id=role_id, signal=s) for s in normalize_signals(signals))


def delete_cascade(db: Session, role: Role) -> None:
    """Free the role's seat and remove its index rows, messages (both directions) and row."""
    release_seat(db, role.table_id, role.seat_id)
    db.execute(delete(RoleSignal).where(RoleSignal.role_id == role.id))
    db.execute(
        delete(Message).where(or_(Message.from_role_id == role.id, Message.to_role_id == role.id))
    )
    db.delete(role)


def search_by_signal(db: Session, terms: list[str], limit: int) -> list[Role]:
    """Roles with any index row containing any of ``terms``, newest first."""
    matches = [
        exists().where(RoleSignal.role_id == Role.id, RoleSignal.signal.contains(term, autoescape=True))
        for term in terms
    ]
    stmt = select(Role).where(or_(*matches)).order_by(Role.created_at.desc()).limit(limit)
    return list(db.execute(stmt).scalars())
