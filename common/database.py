"""Engine, session factory and declarative base shared by the services."""
from collections.abc import Generator
from typing import Any, Dict

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .config import get_settings

settings = get_settings()


def _connect_args(database_url: str, timeout_seconds: float) -> Dict[str, Any]:
    """Bound every store round trip with the configured timeout."""
    backend = make_url(database_url).get_backend_name()
    if backend == "sqlite":
        return {"check_same_thread": False, "timeout": timeout_seconds}
    if backend == "postgresql":
        return {"options": f"-c statement_timeout={int(timeout_seconds * 1000)}"}
    return {}


def _serialize_sqlite_transactions(sqlite_engine: Engine) -> None:
    """Make every SQLite transaction take the database write lock when it begins.

    pysqlite defers BEGIN until the first write, so a read-then-insert would
    run its reads unlocked. Emitting ``BEGIN IMMEDIATE`` ourselves serializes
    transactions across processes; waiters block for the connect timeout.
    """

    @event.listens_for(sqlite_engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):  # type: ignore[no-untyped-def]
        dbapi_connection.isolation_level = None

    @event.listens_for(sqlite_engine, "begin")
    def _begin_immediate(conn):  # type: ignore[no-untyped-def]
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class Base(DeclarativeBase):
    pass


engine = create_engine(
    settings.database_url,
    connect_args=_connect_args(settings.database_url, settings.store_timeout_seconds),
    pool_pre_ping=True,
)
if engine.dialect.name == "sqlite":
    _serialize_sqlite_transactions(engine)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
