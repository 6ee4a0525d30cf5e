# Overview: Service-layer helpers for row locking and retrying concurrent writes.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    The version_id optimistic lock on Bike covers SQLite.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a unit of work with retry on concurrency-related failures.

    Retries on OperationalError (locked database, deadlocks) and
    StaleDataError (another writer bumped version_id first). Each retry
    re-runs func from the top, so preconditions are checked again.
    Domain errors raised by func are not retried.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
