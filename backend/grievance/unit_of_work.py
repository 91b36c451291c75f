"""
unit_of_work.py - Transaction scope for every mutating store operation.

GUARANTEES:
1. One commit per unit of work; any exception rolls back everything
2. Lock waits are bounded (PostgreSQL lock_timeout, SQLite busy timeout)
3. Lock timeouts, serialization failures, deadlocks and lost unique races
   surface as Conflict, which is the only error worth retrying
"""

import logging
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TypeVar

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session as DBSession
from sqlalchemy.orm import sessionmaker

from grievance.database import WRITE_LOCK_OPTION
from grievance.errors import Conflict

logger = logging.getLogger(__name__)

T = TypeVar("T")

# serialization_failure, deadlock_detected, lock_not_available
_PG_CONFLICT_CODES = {"40001", "40P01", "55P03"}
_PG_UNIQUE_VIOLATION = "23505"


def is_conflict(exc: DBAPIError) -> bool:
    """Return True when a driver error means "another writer got there first"."""
    orig = getattr(exc, "orig", None)
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)

    if sqlstate:
        if isinstance(exc, IntegrityError):
            return sqlstate == _PG_UNIQUE_VIOLATION
        return sqlstate in _PG_CONFLICT_CODES

    message = str(orig).lower()
    if isinstance(exc, IntegrityError):
        return "unique constraint failed" in message
    return "database is locked" in message or "database is busy" in message


def _begin_write(db: DBSession, lock_timeout: float) -> None:
    conn = db.connection(execution_options={WRITE_LOCK_OPTION: True})
    if conn.dialect.name == "postgresql":
        # SET LOCAL does not take bind parameters
        db.execute(text(f"SET LOCAL lock_timeout = '{int(lock_timeout * 1000)}ms'"))


@contextmanager
def unit_of_work(
    session_factory: sessionmaker[DBSession], lock_timeout: float
) -> Iterator[DBSession]:
    """
    Open a write transaction, commit on clean exit, roll back on any error.

    Usage:
        with unit_of_work(SessionLocal, 5.0) as db:
            ...
    """
    db = session_factory()
    try:
        try:
            _begin_write(db, lock_timeout)
            yield db
            db.commit()
        except (OperationalError, IntegrityError) as exc:
            db.rollback()
            if is_conflict(exc):
                raise Conflict(
                    "Concurrent write detected; retry the operation",
                    details={"cause": type(exc.orig).__name__ if exc.orig else None},
                ) from exc
            raise
        except BaseException:
            db.rollback()
            raise
    finally:
        db.close()


def run_with_retry(
    operation: Callable[[], T],
    attempts: int,
    backoff_seconds: float,
    label: str,
) -> T:
    """
    Run ``operation`` (a complete unit of work), rerunning it on Conflict.

    The final Conflict is re-raised once ``attempts`` is exhausted. Backoff is
    linear in the attempt number.
    """
    attempt = 1
    while True:
        try:
            return operation()
        except Conflict:
            if attempt >= attempts:
                logger.error("%s: conflict persisted after %d attempts", label, attempts)
                raise
            logger.warning(
                "%s: conflict on attempt %d/%d, retrying", label, attempt, attempts
            )
            time.sleep(backoff_seconds * attempt)
            attempt += 1
