"""Seat occupancy: claim, move and release seats inside the caller's transaction.

None of these functions commit. They are meant to run inside the same
transaction as the role insert/update/delete they belong to, so a reader never
sees a role without a seat or a seat pointing at a role that does not exist.
"""

import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from seatline.db.models import SEATS_PER_TABLE, Role, Seat, SeatingTable
from seatline.utils.errors import SeatOutOfRange, SeatTaken, TableNotFound

logger = logging.getLogger(__name__)


def seat_index_for(seat_number: int) -> int:
    """Map a 1-based seat number to its 0-based slot index."""
    if isinstance(seat_number, bool) or not isinstance(seat_number, int):
        raise SeatOutOfRange(f"Seat must be an integer between 1 and {SEATS_PER_TABLE}")
    if not 1 <= seat_number <= SEATS_PER_TABLE:
        raise SeatOutOfRange(f"Seat {seat_number} is outside 1..{SEATS_PER_TABLE}")
    return seat_number - 1


def _lock_seat(db: Session, table_id: str, seat_index: int) -> Seat:
    if db.get(SeatingTable, table_id) is None:
        raise TableNotFound(f"Table {table_id} does not exist")
    seat = db.execute(
        select(Seat)
        .where(Seat.table_id == table_id, Seat.seat_index == seat_index)
        .with_for_update()
    ).scalar_one_or_none()
    if seat is None:
        raise SeatOutOfRange(f"Table {table_id} has no seat {seat_index + 1}")
    return seat


def reconcile_stale_seat(db: Session, seat: Seat) -> bool:
    """Clear a seat that points at a role which no longer exists.

    Returns True when a repair was made.
    """
    if seat.role_id is None or db.get(Role, seat.role_id) is not None:
        return False
    logger.warning(
        "Clearing stale seat %s/%d held by missing role %s",
        seat.table_id, seat.seat_index + 1, seat.role_id,
    )
    seat.role_id = None
    return True


def claim_seat(db: Session, table_id: str, seat_number: int, role_id: str) -> Seat:
    seat = _lock_seat(db, table_id, seat_index_for(seat_number))
    reconcile_stale_seat(db, seat)
    if seat.role_id is not None and seat.role_id != role_id:
        raise SeatTaken(f"Seat {seat_number} at table {table_id} is taken")
    seat.role_id = role_id
    return seat


def move_seat(db: Session, role: Role, table_id: str, seat_number: int) -> None:
    """Move ``role`` to a new seat, vacating the old one only once the new one is secured."""
    index = seat_index_for(seat_number)
    if role.table_id == table_id and role.seat_id == seat_number:
        return

    dest = _lock_seat(db, table_id, index)
    reconcile_stale_seat(db, dest)
    if dest.role_id is not None and dest.role_id != role.id:
        raise SeatTaken(f"Seat {seat_number} at table {table_id} is taken")

    release_seat(db, role.table_id, role.seat_id)
    dest.role_id = role.id
    role.table_id = table_id
    role.seat_id = seat_number
    logger.info("Role %s moved to table %s seat %d", role.id, table_id, seat_number)


def release_seat(db: Session, table_id: str, seat_number: int) -> None:
    """Free a seat regardless of who (if anyone) holds it."""
    db.execute(
        update(Seat)
        .where(Seat.table_id == table_id, Seat.seat_index == seat_number - 1)
        .values(role_id=None)
    )
