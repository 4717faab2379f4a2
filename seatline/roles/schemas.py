"""Pydantic schemas for roles, tables and signal search."""

from typing import Annotated

from pydantic import BeforeValidator, Field

from seatline.utils.validators import CamelModel


def _to_str(value):
    # Table ids arrive as numbers from some clients
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


TableId = Annotated[str, BeforeValidator(_to_str)]


# --- Requests ---

class CreateRoleRequest(CamelModel):
    id: str | None = None
    name: str
    avatar: str
    signals: list[str] = Field(default_factory=list)
    table_id: TableId
    seat_id: int


class UpdateRoleRequest(CamelModel):
    name: str | None = None
    avatar: str | None = None
    signals: list[str] | None = None
    table_id: TableId | None = None
    seat_id: int | None = None


class UpdateSignalsRequest(CamelModel):
    signals: list[str] = Field(default_factory=list)


# --- Responses ---

class RoleRef(CamelModel):
    id: str
    name: str


class RoleResponse(CamelModel):
    id: str
    name: str
    avatar: str
    table_id: str
    seat_id: int
    signals: list[str]
    created_at: str


class SeatOccupant(CamelModel):
    id: str
    name: str
    avatar: str
    signals: list[str]


class TableResponse(CamelModel):
    id: str
    seats: list[SeatOccupant | None]


class AvailabilityResponse(CamelModel):
    id: str
    taken: list[bool]


class SignalMatchRole(CamelModel):
    id: str
    name: str
    avatar: str


class SignalMatch(CamelModel):
    role: SignalMatchRole
    table_id: str
    seat_id: int
