from __future__ import annotations

import logging

from sqlalchemy import Engine, create_engine, event, inspect, select
from sqlalchemy.orm import sessionmaker

from booking.models import Base, Charger

logger = logging.getLogger(__name__)

DEFAULT_CHARGER_ID = "main"
DEFAULT_CHARGER_NAME = "Shared EV charger"


def create_db_engine(database_url: str, *, echo: bool = False) -> Engine:
    is_sqlite = database_url.startswith("sqlite")
    connect_args = {"check_same_thread": False, "timeout": 30} if is_sqlite else {}

    engine = create_engine(
        database_url,
        pool_pre_ping=not is_sqlite,
        connect_args=connect_args,
        echo=echo,
        future=True,
    )

    if is_sqlite:
        # pysqlite defers BEGIN until the first write, so a reader can later
        # deadlock a writer. BEGIN IMMEDIATE takes the write lock up front.
        @event.listens_for(engine, "connect")
        def _disable_pysqlite_begin(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )


def init_db(engine: Engine, *, charger_id: str = DEFAULT_CHARGER_ID) -> None:
    """Bootstrap schema for environments without migrations and seed the charger row."""
    Base.metadata.create_all(bind=engine)

    session_factory = create_session_factory(engine)
    with session_factory() as db:
        with db.begin():
            existing = db.scalar(select(Charger).where(Charger.id == charger_id))
            if not existing:
                db.add(Charger(id=charger_id, name=DEFAULT_CHARGER_NAME, version=0))
                logger.info("Seeded charger row %s", charger_id)


def validate_db_compatibility(engine: Engine) -> None:
    required_tables = {"chargers", "bookings", "users"}
    required_columns = {
        "bookings": {"confirmation_code", "start_time", "end_time", "status", "cancelled_at"},
        "chargers": {"version"},
    }

    inspector = inspect(engine)
    existing_tables = set(inspector.get_table_names())
    missing_tables = sorted(required_tables - existing_tables)

    missing_column_msgs: list[str] = []
    for table_name, columns in required_columns.items():
        if table_name not in existing_tables:
            continue
        existing_columns = {col["name"] for col in inspector.get_columns(table_name)}
        missing_columns = sorted(columns - existing_columns)
        if missing_columns:
            missing_column_msgs.append(f"{table_name}: {', '.join(missing_columns)}")

    if not missing_tables and not missing_column_msgs:
        return

    details: list[str] = []
    if missing_tables:
        details.append(f"missing tables [{', '.join(missing_tables)}]")
    if missing_column_msgs:
        details.append(f"missing columns [{'; '.join(missing_column_msgs)}]")

    raise RuntimeError(
        "Database compatibility check failed: "
        + "; ".join(details)
        + ". Apply required migrations before starting the API."
    )
