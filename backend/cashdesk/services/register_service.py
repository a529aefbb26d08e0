"""
Register Session Service

WHY: A register session is the period of accountability for one cash
drawer, from counted opening float to counted closing float.

DESIGN PRINCIPLES:
- One open session per store, enforced by a partial unique index
  (the pre-check here only gives a friendlier error)
- Close is one conditional UPDATE (... WHERE closed_at IS NULL); two
  concurrent closes cannot both win
- The difference is computed against a window ending at the captured
  close timestamp, before anything is written
- Sessions are immutable once closed; reopening means a new session
- Driver/transport failures during open/close surface as
  RegisterPersistenceError: the caller must re-read current() to learn
  whether the state changed
"""

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import RegisterSession, Store
from ..validation import parse_amount_cents
from cashdesk.time_utils import utcnow
from .concurrency import lock_for_update, persistence_guard
from .reconciliation_service import ReconciliationSummary, summarize


class RegisterError(Exception):
    """Raised for register operation errors."""
    pass


class AlreadyOpenError(RegisterError):
    """The store already has an open session."""
    pass


class NotOpenError(RegisterError):
    """Close was attempted on a session that is closed or doesn't exist."""
    pass


class SessionNotOpenError(RegisterError):
    """An entry was added to a session that is no longer open."""
    pass


class SessionNotFoundError(RegisterError):
    """Raised when a register session id doesn't resolve."""
    pass


class StoreNotFoundError(RegisterError):
    """Raised when a store id doesn't resolve or the store is inactive."""
    pass


class RegisterPersistenceError(RegisterError):
    """
    Open/close was interrupted by the database or the connection.

    Retryable. The outcome is unknown until current() is re-read.
    """
    retryable = True


# =============================================================================
# QUERIES
# =============================================================================

def get_current_session(store_id: int) -> RegisterSession | None:
    """The open session of a store, if any."""
    return db.session.query(RegisterSession).filter(
        RegisterSession.store_id == store_id,
        RegisterSession.closed_at.is_(None),
    ).first()


def get_session(session_id: int) -> RegisterSession:
    session = db.session.get(RegisterSession, session_id)
    if session is None:
        raise SessionNotFoundError(f"Register session {session_id} not found")
    return session


def list_sessions(store_id: int, status: str = "all", limit: int = 50) -> list[RegisterSession]:
    """
    Sessions of a store, newest first.

    status: "all", "open" or "closed"
    """
    query = db.session.query(RegisterSession).filter(RegisterSession.store_id == store_id)

    if status == "open":
        query = query.filter(RegisterSession.closed_at.is_(None))
    elif status == "closed":
        query = query.filter(RegisterSession.closed_at.isnot(None))
    elif status != "all":
        raise ValueError("status must be one of: all, open, closed")

    return query.order_by(
        RegisterSession.opened_at.desc(),
        RegisterSession.id.desc(),
    ).limit(limit).all()


# =============================================================================
# STATE TRANSITIONS
# =============================================================================

def open_register(store_id: int, operator_id: int | None, opening_amount) -> RegisterSession:
    """
    Open a new session for a store.

    Args:
        store_id: Store whose drawer is being opened
        operator_id: Operator opening the drawer
        opening_amount: Counted opening float, in cents

    Raises:
        InvalidAmountError: If opening_amount is negative or not integer cents
        StoreNotFoundError: If the store doesn't exist or is inactive
        AlreadyOpenError: If the store already has an open session
        RegisterPersistenceError: If the write was interrupted (retryable)
    """
    opening_amount = parse_amount_cents(opening_amount, "opening_amount")

    with persistence_guard(RegisterPersistenceError, "Could not open register"):
        store = db.session.get(Store, store_id)
        if store is None or not store.is_active:
            raise StoreNotFoundError(f"Store {store_id} not found")

        existing = get_current_session(store_id)
        if existing:
            raise AlreadyOpenError(f"Store {store_id} already has an open register session ({existing.id})")

        session = RegisterSession(
            store_id=store_id,
            operator_id=operator_id,
            opening_amount=opening_amount,
            opened_at=utcnow(),
        )
        db.session.add(session)

        try:
            db.session.commit()
        except IntegrityError as exc:
            # Lost the race against another terminal: the partial unique index rejected us
            db.session.rollback()
            winner = get_current_session(store_id)
            if winner is not None:
                raise AlreadyOpenError(
                    f"Store {store_id} already has an open register session ({winner.id})"
                ) from exc
            raise RegisterError(f"Could not open register for store {store_id}") from exc

    current_app.logger.info(
        "Register session %s opened for store %s by operator %s (opening %s)",
        session.id, store_id, operator_id, opening_amount,
    )
    return session


def close_register(
    session_id: int,
    closing_amount,
    *,
    closed_by_id: int | None = None,
    notes: str | None = None,
    adapters=None,
) -> RegisterSession:
    """Close a session and freeze its difference. See close_register_with_summary."""
    session, _ = close_register_with_summary(
        session_id,
        closing_amount,
        closed_by_id=closed_by_id,
        notes=notes,
        adapters=adapters,
    )
    return session


def close_register_with_summary(
    session_id: int,
    closing_amount,
    *,
    closed_by_id: int | None = None,
    notes: str | None = None,
    adapters=None,
) -> tuple[RegisterSession, ReconciliationSummary]:
    """
    Close a session and freeze its difference.

    Returns the closed session and the summary its difference was computed
    from, so callers report the same numbers that were frozen.

    The window end is captured once, the expected balance is computed for
    [opened_at, closed_at), and the close is written with a single
    conditional UPDATE. rowcount 0 means someone else closed it first.

    Raises:
        InvalidAmountError: If closing_amount is negative or not integer cents
        NotOpenError: If the session doesn't exist or is already closed
        RegisterPersistenceError: If the write was interrupted (retryable)
    """
    closing_amount = parse_amount_cents(closing_amount, "closing_amount")

    with persistence_guard(RegisterPersistenceError, "Could not close register"):
        session = lock_for_update(db.session.query(RegisterSession).filter_by(id=session_id)).first()

        if session is None:
            raise NotOpenError(f"Register session {session_id} does not exist")
        if not session.is_open:
            raise NotOpenError(f"Register session {session_id} is already closed")

        closed_at = utcnow()
        if closed_at < session.opened_at:
            # Never end the window before it starts
            closed_at = session.opened_at

        summary = summarize(session, adapters=adapters, now=closed_at)
        difference = closing_amount - summary.expected_balance

        result = db.session.execute(
            update(RegisterSession)
            .where(
                RegisterSession.id == session_id,
                RegisterSession.closed_at.is_(None),
            )
            .values(
                closing_amount=closing_amount,
                closed_at=closed_at,
                difference=difference,
                closed_by_id=closed_by_id,
                notes=notes,
                version_id=RegisterSession.version_id + 1,
            )
            .execution_options(synchronize_session=False)
        )

        if result.rowcount != 1:
            db.session.rollback()
            raise NotOpenError(f"Register session {session_id} was closed concurrently")

        db.session.commit()

    db.session.refresh(session)

    summary.is_closed = True
    summary.closing_amount = closing_amount
    summary.difference = difference
    summary.recorded_difference = difference

    if summary.degraded:
        current_app.logger.warning(
            "Register session %s closed with degraded summary (failed channels: %s)",
            session_id, ", ".join(summary.failed_channels),
        )
    current_app.logger.info(
        "Register session %s closed (expected %s, counted %s, difference %s)",
        session_id, summary.expected_balance, closing_amount, difference,
    )
    return session, summary
