from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .config import settings

# Execution option that marks a connection as the write side of a unit of work.
WRITE_LOCK_OPTION = "grievance_write_lock"


class Base(DeclarativeBase):
    """SQLAlchemy declarative base with proper typing."""

    pass


def _install_sqlite_locking(engine: Engine) -> None:
    """
    Take over transaction control from pysqlite.

    Writers open with BEGIN IMMEDIATE so the reserved lock is held from the
    first statement; readers keep a deferred BEGIN and never block writers
    under WAL.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        if conn.get_execution_options().get(WRITE_LOCK_OPTION):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


def build_engine(url: str, lock_timeout: float | None = None) -> Engine:
    """Create an engine for ``url`` with bounded lock waits."""
    lock_timeout = settings.LOCK_TIMEOUT_SECONDS if lock_timeout is None else lock_timeout

    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": lock_timeout},
        )
        _install_sqlite_locking(engine)
        return engine

    return create_engine(
        url,
        pool_pre_ping=True,
        pool_recycle=300,
        pool_size=10,
        max_overflow=20,
    )


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


engine = build_engine(settings.database_url)

SessionLocal = build_session_factory(engine)

