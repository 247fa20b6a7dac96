# Overview: Transaction helpers shared by every atomic unit in the ledger.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write() covers it there.
    """
    return query.with_for_update()


def begin_write() -> None:
    """
    Take the database write lock up front on SQLite.

    SQLite has no row locks, so two read-then-write units would otherwise
    interleave. BEGIN IMMEDIATE serializes writers for the whole unit.
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.1):
    """
    Execute one atomic unit, rolling back on any failure.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Every other exception rolls back the
    session and propagates unchanged.
    """
    if attempts is None:
        attempts = current_app.config.get("DB_RETRY_ATTEMPTS", 3)

    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Retrying transaction after %s (attempt %d/%d)",
                type(exc).__name__, attempt + 1, attempts,
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
    if last_exc:
        raise last_exc
