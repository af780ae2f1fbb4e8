# Overview: Row locking and retry helpers for stock writes.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the product
    version_id column turns a lost update into StaleDataError instead.
    """
    return query.with_for_update()


def _default_attempts() -> int:
    return int(current_app.config.get("STOCK_WRITE_RETRY_ATTEMPTS", 3))


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.1):
    """
    Execute a DB operation as one transaction, retrying on concurrency failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). func must re-read everything it touches,
    since every retry starts from a rolled-back session. Any other
    exception rolls the session back and propagates.

    Only the outermost transaction boundary may call this; nested service
    calls run with commit=False and are retried as part of their caller.
    """
    if attempts is None:
        attempts = _default_attempts()
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
                "Concurrent write conflict (attempt %s/%s): %s", attempt + 1, attempts, exc
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
    if last_exc:
        raise last_exc


def run_in_transaction(func, *, commit: bool = True):
    """
    Run func as its own transaction (commit=True, with retry) or as part of
    the caller's open transaction (commit=False, no commit and no retry).
    """
    if not commit:
        return func()

    def _op():
        result = func()
        db.session.commit()
        return result

    return run_with_retry(_op)
