"""Engine, session factory and schema bootstrap for the relational store."""

import logging
from collections.abc import Generator, Iterator
from contextlib import contextmanager
from pathlib import Path

from fastapi import Request
from sqlalchemy import create_engine, event, func, select
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from seatline.db.models import SEATS_PER_TABLE, Base, Seat, SeatingTable

logger = logging.getLogger(__name__)


def _is_sqlite(url: str) -> bool:
    return make_url(url).get_backend_name() == "sqlite"


def make_engine(database_url: str) -> Engine:
    if _is_sqlite(database_url):
        database = make_url(database_url).database
        if database and database != ":memory:":
            Path(database).parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(database_url, connect_args={"check_same_thread": False})
        _serialize_sqlite_writers(engine, wal=bool(database) and database != ":memory:")
        return engine

    # Supabase-hosted Postgres requires SSL
    connect_args = {}
    if "supabase" in database_url.lower():
        connect_args["sslmode"] = "require"
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        connect_args=connect_args,
    )


def _serialize_sqlite_writers(engine: Engine, wal: bool) -> None:
    """Open every SQLite transaction with BEGIN IMMEDIATE.

    pysqlite defers BEGIN until the first write, which lets two check-then-act
    transactions read the same free seat. Taking the write lock up front makes
    each transaction a single-writer critical section.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        if wal:
            cursor.execute("PRAGMA journal_mode = WAL")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def get_db(request: Request) -> Generator[Session, None, None]:
    """FastAPI dependency: one session per request, always closed."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """Commit on success, roll back and re-raise on any error."""
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def init_db(engine: Engine, seed_table_ids: list[str]) -> None:
    """Create the schema and seed tables (six empty seats each) on first run."""
    Base.metadata.create_all(bind=engine)

    with make_session_factory(engine)() as db, transaction(db):
        count = db.scalar(select(func.count()).select_from(SeatingTable))
        if count:
            return
        db.add_all(SeatingTable(id=table_id) for table_id in seed_table_ids)
        db.flush()
        for table_id in seed_table_ids:
            for index in range(SEATS_PER_TABLE):
                db.add(Seat(table_id=table_id, seat_index=index, role_id=None))
        logger.info("Seeded %d tables: %s", len(seed_table_ids), ", ".join(seed_table_ids))
