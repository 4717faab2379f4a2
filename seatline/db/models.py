"""ORM models: roles, tables/seats, messages and the derived signal index."""

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Table names
ROLES = "roles"
TABLES = "tables"
SEATS = "seats"
MESSAGES = "messages"
ROLE_SIGNALS = "role_signals"

SEATS_PER_TABLE = 6

KIND_REQUEST = "request"
KIND_RESPONSE = "response"
VALID_KINDS = {KIND_REQUEST, KIND_RESPONSE}


class Role(Base):
    __tablename__ = ROLES
    __table_args__ = (
        UniqueConstraint("table_id", "seat_id", name="uq_roles_table_seat"),
        CheckConstraint(f"seat_id BETWEEN 1 AND {SEATS_PER_TABLE}", name="ck_roles_seat_id"),
    )

    id = Column(String(64), primary_key=True)
    name = Column(String(120), nullable=False)
    avatar = Column(String(255), nullable=False)
    signals = Column(JSON, nullable=False, default=list)
    table_id = Column(String(32), ForeignKey(f"{TABLES}.id"), nullable=False)
    # 1-based seat number as shown to people
    seat_id = Column(Integer, nullable=False)
    created_at = Column(String(40), nullable=False)


class SeatingTable(Base):
    __tablename__ = TABLES

    id = Column(String(32), primary_key=True)


class Seat(Base):
    __tablename__ = SEATS
    __table_args__ = (
        CheckConstraint(f"seat_index BETWEEN 0 AND {SEATS_PER_TABLE - 1}", name="ck_seats_index"),
    )

    table_id = Column(String(32), ForeignKey(f"{TABLES}.id", ondelete="CASCADE"), primary_key=True)
    # 0-based slot index; seat number = seat_index + 1
    seat_index = Column(Integer, primary_key=True)
    # No FK: a pointer to a vanished role is repaired on the next claim
    role_id = Column(String(64), nullable=True)


class Message(Base):
    __tablename__ = MESSAGES
    __table_args__ = (
        CheckConstraint("kind IN ('request', 'response')", name="ck_messages_kind"),
        Index("idx_msg_from_time", "from_role_id", "created_at", "id"),
        Index("idx_msg_to_time", "to_role_id", "created_at", "id"),
    )

    id = Column(String(64), primary_key=True)
    from_role_id = Column(String(64), ForeignKey(f"{ROLES}.id"), nullable=False)
    to_role_id = Column(String(64), ForeignKey(f"{ROLES}.id"), nullable=False)
    text = Column(Text, nullable=False)
    kind = Column(String(16), nullable=False, default=KIND_REQUEST)
    in_reply_to = Column(String(64), nullable=True, index=True)
    created_at = Column(String(40), nullable=False)


class RoleSignal(Base):
    __tablename__ = ROLE_SIGNALS

    id = Column(Integer, primary_key=True, autoincrement=True)
    role_id = Column(String(64), ForeignKey(f"{ROLES}.id", ondelete="CASCADE"), nullable=False, index=True)
    signal = Column(String(255), nullable=False)
