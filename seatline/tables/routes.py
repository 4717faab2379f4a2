"""Table occupancy endpoints."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from seatline.db.client import get_db
from seatline.db.models import Role
from seatline.roles.schemas import AvailabilityResponse, SeatOccupant, TableResponse
from seatline.tables import repository
from seatline.utils.errors import TableNotFound

router = APIRouter(prefix="/api/v1/tables", tags=["Tables"])


def _occupant(role: Role | None) -> SeatOccupant | None:
    if role is None:
        return None
    return SeatOccupant(id=role.id, name=role.name, avatar=role.avatar, signals=role.signals or [])


@router.get("", summary="List tables", description="Tables with de-referenced seat occupants, nearest to `near` first.")
def list_tables(
    near: str = "",
    limit: int = Query(5, ge=1, le=20),
    db: Session = Depends(get_db),
):
    ids = repository.list_table_ids(db)
    picked = repository.nearest(ids, near, limit) if near else ids[:limit]
    occupied = repository.occupants(db, picked)
    data = [TableResponse(id=t, seats=[_occupant(r) for r in occupied[t]]) for t in picked]
    return {"status": "success", "data": data}


@router.get("/{table_id}", summary="Get one table", description="The six seats of a table; null marks an empty seat.")
def get_table(table_id: str, db: Session = Depends(get_db)):
    if not repository.exists(db, table_id):
        raise TableNotFound(f"Table {table_id} does not exist")
    occupied = repository.occupants(db, [table_id])[table_id]
    return {"status": "success", "data": TableResponse(id=table_id, seats=[_occupant(r) for r in occupied])}


@router.get("/{table_id}/availability", summary="Seat availability", description="Lightweight taken/free flags for polling.")
def availability(table_id: str, db: Session = Depends(get_db)):
    if not repository.exists(db, table_id):
        raise TableNotFound(f"Table {table_id} does not exist")
    occupied = repository.occupants(db, [table_id])[table_id]
    return {"status": "success", "data": AvailabilityResponse(id=table_id, taken=[r is not None for r in occupied])}
