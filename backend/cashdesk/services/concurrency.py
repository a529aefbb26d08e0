# Overview: Service-layer helpers for concurrency; row locking, retries and DB failure translation.

from __future__ import annotations

import time
from contextlib import contextmanager

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Not used for open/close: those surface
    the failure so the caller re-reads state instead of repeating a
    money-affecting write blindly.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


@contextmanager
def persistence_guard(error_cls, message: str):
    """
    Roll back and re-raise transport/driver failures as error_cls.

    IntegrityError passes through untouched: it is a constraint verdict,
    and callers map it to a state error themselves.
    """
    try:
        yield
    except IntegrityError:
        raise
    except (OperationalError, DBAPIError) as exc:
        db.session.rollback()
        raise error_cls(f"{message}: {exc.__class__.__name__}") from exc
