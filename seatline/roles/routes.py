"""Role endpoints (seat claim, edit, sign-out) and signal search."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from seatline.config.settings import Settings, app_settings
from seatline.db.client import get_db
from seatline.roles.schemas import (
    CreateRoleRequest,
    RoleRef,
    RoleResponse,
    SignalMatch,
    SignalMatchRole,
    UpdateRoleRequest,
    UpdateSignalsRequest,
)
from seatline.roles.service import (
    create_role,
    delete_role,
    get_role,
    list_roles,
    search_signals,
    update_role,
    update_signals,
)
from seatline.utils.validators import SuccessResponse

router = APIRouter(prefix="/api/v1/roles", tags=["Roles"])
search_router = APIRouter(prefix="/api/v1/search", tags=["Search"])


@router.post("", status_code=201, response_model=SuccessResponse, summary="Claim a seat", description="Create a role and claim its seat in one step.")
def create(body: CreateRoleRequest, db: Session = Depends(get_db)):
    role = create_role(db, body)
    return SuccessResponse(data={"id": role.id})


@router.get("", summary="List roles", description="Up to 20 roles, optionally filtered by a name substring.")
def list_all(search: str = "", db: Session = Depends(get_db)):
    roles = list_roles(db, search)
    return {"status": "success", "data": [RoleRef.model_validate(r) for r in roles]}


@router.get("/{role_id}", summary="Get a role")
def get(role_id: str, db: Session = Depends(get_db)):
    return {"status": "success", "data": RoleResponse.model_validate(get_role(db, role_id))}


@router.patch("/{role_id}", summary="Update a role", description="Rename, change avatar/signals, or move to another seat.")
def patch(role_id: str, body: UpdateRoleRequest, db: Session = Depends(get_db)):
    role = update_role(db, role_id, body)
    return {"status": "success", "data": RoleResponse.model_validate(role)}


@router.patch("/{role_id}/signals", summary="Replace a role's signals")
def patch_signals(role_id: str, body: UpdateSignalsRequest, db: Session = Depends(get_db)):
    role = update_signals(db, role_id, body.signals)
    return {"status": "success", "data": RoleResponse.model_validate(role)}


@router.delete("/{role_id}", summary="Sign out", description="Delete a role, free its seat and remove its messages. Idempotent.")
async def delete(role_id: str, request: Request, db: Session = Depends(get_db)):
    deleted = await run_in_threadpool(delete_role, db, role_id)
    if deleted:
        request.app.state.broker.drop_role(role_id)
    return {"status": "success", "data": {"deleted": deleted}}


@search_router.get("/signals", summary="Search roles by signal", description="Roles whose signals contain any of the whitespace-separated terms.")
def search(
    q: str = "",
    limit: int | None = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(app_settings),
):
    roles = search_signals(db, q, limit, settings.SEARCH_LIMIT_DEFAULT)
    data = [
        SignalMatch(
            role=SignalMatchRole(id=r.id, name=r.name, avatar=r.avatar),
            table_id=r.table_id,
            seat_id=r.seat_id,
        )
        for r in roles
    ]
    return {"status": "success", "data": data}
