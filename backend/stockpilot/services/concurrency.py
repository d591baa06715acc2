# Overview: Locking and retry helpers for multi-write service operations.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for stock-mutating operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the Product version_id
    column turns a concurrent write into a StaleDataError, which
    run_with_retry handles by re-reading and re-validating.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation as one unit, retrying on concurrency failures.

    Any exception rolls the session back so a failed multi-step write leaves
    nothing behind. OperationalError (locks, deadlocks) and StaleDataError
    (optimistic version conflicts) are retried; everything else propagates.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Retrying after concurrency conflict (attempt %d/%d): %s",
                attempt + 1, attempts, exc.__class__.__name__,
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
