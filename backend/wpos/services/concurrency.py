# Overview: Transaction helpers shared by every write path: row locks, retries, request deadlines.

from __future__ import annotations

import time

from flask import current_app, g, has_app_context
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import DomainError, DownstreamError
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_serialized() covers it there.
    """
    return query.with_for_update()


def begin_serialized() -> None:
    """
    Take the database write lock up front on SQLite.

    SQLite has no row locks, so writers that read-then-write (queue numbers,
    reorder) start with BEGIN IMMEDIATE. Other dialects rely on
    lock_for_update() and this is a no-op.
    """
    if db.engine.dialect.name != "sqlite":
        return
    raw = db.session.connection().connection.dbapi_connection
    if not raw.in_transaction:
        db.session.execute(text("BEGIN IMMEDIATE"))


def remaining_seconds() -> float | None:
    """Seconds left before the current request's deadline, or None outside a request."""
    if not has_app_context():
        return None
    deadline = g.get("deadline")
    if deadline is None:
        return None
    return deadline - time.monotonic()


def check_deadline() -> None:
    """
    Abort the unit of work once the request deadline has passed.

    The session is rolled back before raising so no partial write survives.
    """
    left = remaining_seconds()
    if left is None:
        return
    if left <= 0:
        db.session.rollback()
        raise DownstreamError("request deadline exceeded")
    if db.engine.dialect.name == "postgresql":
        # Bound every statement in this transaction by what is left of the budget
        db.session.execute(text(f"SET LOCAL statement_timeout = {max(int(left * 1000), 1)}"))


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). The request deadline is checked before
    every attempt.
    """
    last_exc = None
    for attempt in range(attempts):
        check_deadline()
        try:
            return func()
        except DomainError:
            # Business rule failures abandon the whole unit of work
            db.session.rollback()
            raise
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                current_app.logger.error("giving up after %d attempts: %s", attempts, exc)
                raise DownstreamError("storage operation failed") from exc
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
