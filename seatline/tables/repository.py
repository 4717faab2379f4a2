"""Read-side queries for tables and their seats."""

from sqlalchemy import select
from sqlalchemy.orm import Session

from seatline.db.models import SEATS_PER_TABLE, Role, Seat, SeatingTable
from seatline.roles import repository as roles_repository


def _numeric_key(table_id: str) -> tuple[float, str]:
    try:
        return float(table_id), table_id
    except ValueError:
        return float("inf"), table_id


def list_table_ids(db: Session) -> list[str]:
    ids = db.execute(select(SeatingTable.id)).scalars()
    return sorted(ids, key=_numeric_key)


def exists(db: Session, table_id: str) -> bool:
    return db.get(SeatingTable, table_id) is not None


def seat_map(db: Session, table_ids: list[str]) -> dict[str, list[str | None]]:
    """Role id (or None) for each of the six slots of every requested table."""
    out: dict[str, list[str | None]] = {t: [None] * SEATS_PER_TABLE for t in table_ids}
    if not table_ids:
        return out
    rows = db.execute(select(Seat).where(Seat.table_id.in_(table_ids)))
    for seat in rows.scalars():
        out[seat.table_id][seat.seat_index] = seat.role_id
    return out


def occupants(db: Session, table_ids: list[str]) -> dict[str, list[Role | None]]:
    """Like :func:`seat_map` but de-referenced; stale pointers read as empty."""
    seats = seat_map(db, table_ids)
    role_ids = {rid for slots in seats.values() for rid in slots if rid}
    roles = roles_repository.get_many(db, role_ids)
    return {t: [roles.get(rid) if rid else None for rid in slots] for t, slots in seats.items()}


def nearest(table_ids: list[str], near: str, limit: int) -> list[str]:
    """Tables ordered by numeric distance to ``near``; original order when ``near`` is not numeric."""
    try:
        target = float(near)
    except ValueError:
        return table_ids[:limit]
    return sorted(table_ids, key=lambda t: abs(_numeric_key(t)[0] - target))[:limit]
