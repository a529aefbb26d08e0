# Overview: Flask API routes for register sessions and cash entries; parses input and returns JSON responses.

"""
Register Session API Routes

DESIGN:
- Session lifecycle: open -> close (immutable once closed)
- Cash entries recorded against the open session
- Summary recomputed on every read

ERROR BODIES:
Every error carries "state_changed" so the operator knows whether money
moved: false for validation/permission/state errors, "unknown" for a
retryable persistence failure (re-read /current before retrying).

SECURITY:
- access_cash_register for the session lifecycle and reads
- Entry edits/deletes are capability-checked in the ledger service
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import register_service, ledger_service, reconciliation_service, cash_count_service
from ..services.register_service import (
    AlreadyOpenError,
    NotOpenError,
    SessionNotOpenError,
    SessionNotFoundError,
    StoreNotFoundError,
    RegisterPersistenceError,
    RegisterError,
)
from ..services.ledger_service import EntryNotFoundError
from ..services.permission_service import PermissionDeniedError
from ..validation import ValidationError
from ..decorators import require_operator, require_permission


registers_bp = Blueprint("registers", __name__, url_prefix="/api/registers")


def _error(message: str, status: int, /, *, state_changed=False, **extra):
    body = {"error": message, "state_changed": state_changed}
    body.update(extra)
    return jsonify(body), status


def _retryable(e: Exception):
    return _error(
        str(e),
        503,
        state_changed="unknown",
        retryable=True,
        hint="Re-read the store's current session before retrying",
    )


def _ensure_store_scope(store_id: int | None):
    """Operators bound to a store may only act on that store."""
    if g.current_user.store_id and store_id and g.current_user.store_id != store_id:
        return _error("Store access denied", 403)
    return None


def _amount_from_body(data: dict, field: str):
    """Take the amount in cents, or total a denomination count if one is given."""
    if data.get("denominations") is not None:
        return cash_count_service.count_denominations(data["denominations"])["total"]
    return data.get(field)


# =============================================================================
# SESSION LIFECYCLE
# =============================================================================

@registers_bp.post("/stores/<int:store_id>/open")
@require_operator
@require_permission("access_cash_register")
def open_register_route(store_id: int):
    """
    Open the store's register.

    Request body:
    {
        "opening_amount": 10000          (cents)
    }
    or
    {
        "denominations": {"50": 2}       (counted notes/coins)
    }
    """
    denied = _ensure_store_scope(store_id)
    if denied:
        return denied

    data = request.get_json(silent=True) or {}
    try:
        amount = _amount_from_body(data, "opening_amount")
        session = register_service.open_register(store_id, g.current_user.id, amount)
        return jsonify({"session": session.to_dict()}), 201

    except ValidationError as e:
        return _error(str(e), 400)
    except StoreNotFoundError as e:
        return _error(str(e), 404)
    except AlreadyOpenError as e:
        current = register_service.get_current_session(store_id)
        return _error(str(e), 409, current_session=current.to_dict() if current else None)
    except RegisterPersistenceError as e:
        return _retryable(e)
    except RegisterError as e:
        return _error(str(e), 409)
    except Exception:
        current_app.logger.exception("Failed to open register")
        return _error("Internal server error", 500, state_changed="unknown")


@registers_bp.get("/stores/<int:store_id>/current")
@require_operator
@require_permission("access_cash_register")
def current_session_route(store_id: int):
    """The open session of the store, or null."""
    denied = _ensure_store_scope(store_id)
    if denied:
        return denied

    session = register_service.get_current_session(store_id)
    return jsonify({"session": session.to_dict() if session else None}), 200


@registers_bp.get("/stores/<int:store_id>/sessions")
@require_operator
@require_permission("access_cash_register")
def list_sessions_route(store_id: int):
    """Sessions of a store, newest first. Query: status=all|open|closed, limit."""
    denied = _ensure_store_scope(store_id)
    if denied:
        return denied

    status = request.args.get("status", "all")
    limit = request.args.get("limit", 50, type=int)
    limit = max(1, min(limit, 500))

    try:
        sessions = register_service.list_sessions(store_id, status=status, limit=limit)
    except ValueError as e:
        return _error(str(e), 400)

    return jsonify({"sessions": [s.to_dict() for s in sessions]}), 200


@registers_bp.post("/sessions/<int:session_id>/close")
@require_operator
@require_permission("access_cash_register")
def close_register_route(session_id: int):
    """
    Close a session.

    Request body:
    {
        "closing_amount": 26500,         (cents, or "denominations")
        "notes": "Short by 5.00"         (optional)
    }

    Response includes the summary the difference was frozen against.
    """
    data = request.get_json(silent=True) or {}
    try:
        existing = register_service.get_session(session_id)
        denied = _ensure_store_scope(existing.store_id)
        if denied:
            return denied

        amount = _amount_from_body(data, "closing_amount")
        notes = data.get("notes")
        if notes is not None and not isinstance(notes, str):
            return _error("notes must be a string", 400)

        session, summary = register_service.close_register_with_summary(
            session_id,
            amount,
            closed_by_id=g.current_user.id,
            notes=notes,
        )
        return jsonify({"session": session.to_dict(), "summary": summary.to_dict()}), 200

    except ValidationError as e:
        return _error(str(e), 400)
    except SessionNotFoundError as e:
        return _error(str(e), 404)
    except NotOpenError as e:
        return _error(str(e), 409)
    except RegisterPersistenceError as e:
        return _retryable(e)
    except RegisterError as e:
        return _error(str(e), 409)
    except Exception:
        current_app.logger.exception("Failed to close register session %s", session_id)
        return _error("Internal server error", 500, state_changed="unknown")


@registers_bp.get("/sessions/<int:session_id>")
@require_operator
@require_permission("access_cash_register")
def get_session_route(session_id: int):
    try:
        session = register_service.get_session(session_id)
    except SessionNotFoundError as e:
        return _error(str(e), 404)

    denied = _ensure_store_scope(session.store_id)
    if denied:
        return denied
    return jsonify({"session": session.to_dict()}), 200


@registers_bp.get("/sessions/<int:session_id>/summary")
@require_operator
@require_permission("access_cash_register")
def session_summary_route(session_id: int):
    """
    Reconciliation summary. Live for open sessions.

    A degraded summary (some channel failed or timed out) is still 200;
    check "degraded" and "failed_channels".
    """
    try:
        session = register_service.get_session(session_id)
        denied = _ensure_store_scope(session.store_id)
        if denied:
            return denied

        summary = reconciliation_service.summarize(session)
        return jsonify({"summary": summary.to_dict()}), 200

    except SessionNotFoundError as e:
        return _error(str(e), 404)
    except Exception:
        current_app.logger.exception("Failed to summarize register session %s", session_id)
        return _error("Internal server error", 500)


# =============================================================================
# CASH ENTRIES
# =============================================================================

@registers_bp.post("/sessions/<int:session_id>/entries")
@require_operator
@require_permission("access_cash_register")
def add_entry_route(session_id: int):
    """
    Record a manual cash movement.

    Request body:
    {
        "type": "income" | "expense",
        "amount": 2500,                  (cents, > 0)
        "description": "Change fund",
        "payment_method": "cash"         (optional, default cash)
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        session = register_service.get_session(session_id)
        denied = _ensure_store_scope(session.store_id)
        if denied:
            return denied

        entry = ledger_service.add_entry(
            session_id,
            data.get("type"),
            data.get("amount"),
            data.get("description"),
            data.get("payment_method"),
            created_by_id=g.current_user.id,
        )
        return jsonify({"entry": entry.to_dict()}), 201

    except ValidationError as e:
        return _error(str(e), 400)
    except SessionNotFoundError as e:
        return _error(str(e), 404)
    except SessionNotOpenError as e:
        return _error(str(e), 409)
    except Exception:
        current_app.logger.exception("Failed to add entry to register session %s", session_id)
        return _error("Internal server error", 500, state_changed="unknown")


@registers_bp.get("/sessions/<int:session_id>/entries")
@require_operator
@require_permission("access_cash_register")
def list_entries_route(session_id: int):
    """Entries of a session, newest first."""
    try:
        session = register_service.get_session(session_id)
    except SessionNotFoundError as e:
        return _error(str(e), 404)

    denied = _ensure_store_scope(session.store_id)
    if denied:
        return denied

    entries = ledger_service.list_entries(session_id)
    return jsonify({"entries": [e.to_dict() for e in entries]}), 200


@registers_bp.patch("/entries/<int:entry_id>")
@require_operator
@require_permission("access_cash_register")
def update_entry_route(entry_id: int):
    """
    Patch an entry.

    manage_cash_entries may change type, amount, description and
    payment_method; edit_cash_entries may change payment_method only
    (other fields are ignored and listed in "ignored_fields").
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return _error("JSON object body required", 400)

    try:
        before = ledger_service.get_entry(entry_id)
        denied = _ensure_store_scope(before.register_session.store_id)
        if denied:
            return denied
        entry = ledger_service.update_entry(entry_id, data, g.current_user)
        allowed = ledger_service.editable_fields(g.current_user)
        ignored = sorted(key for key in data if key not in allowed)
        return jsonify({"entry": entry.to_dict(), "ignored_fields": ignored}), 200

    except EntryNotFoundError as e:
        return _error(str(e), 404)
    except PermissionDeniedError as e:
        return _error("Access denied", 403, message=str(e))
    except ValidationError as e:
        return _error(str(e), 400)
    except Exception:
        current_app.logger.exception("Failed to update ledger entry %s", entry_id)
        return _error("Internal server error", 500, state_changed="unknown")


@registers_bp.delete("/entries/<int:entry_id>")
@require_operator
@require_permission("access_cash_register")
def delete_entry_route(entry_id: int):
    """Delete an entry. Requires delete_cash_entries."""
    try:
        entry = ledger_service.get_entry(entry_id)
        denied = _ensure_store_scope(entry.register_session.store_id)
        if denied:
            return denied

        ledger_service.delete_entry(entry_id, g.current_user)
        return jsonify({"deleted": True, "entry_id": entry_id}), 200

    except EntryNotFoundError as e:
        return _error(str(e), 404)
    except PermissionDeniedError as e:
        return _error("Access denied", 403, message=str(e))
    except Exception:
        current_app.logger.exception("Failed to delete ledger entry %s", entry_id)
        return _error("Internal server error", 500, state_changed="unknown")


# =============================================================================
# CASH COUNT
# =============================================================================

@registers_bp.post("/cash-count")
@require_operator
@require_permission("access_cash_register")
def cash_count_route():
    """
    Total a drawer count without touching any session.

    Request body:
    {
        "denominations": {"100": 1, "50": 3, "0.25": 4}
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        result = cash_count_service.count_denominations(data.get("denominations"))
        return jsonify(result), 200
    except ValidationError as e:
        return _error(str(e), 400)
