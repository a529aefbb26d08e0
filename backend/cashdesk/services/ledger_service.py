# Overview: Service-layer operations for the cash ledger; manual income/expense entries of a register session.

"""
Cash Ledger Service

WHY: Not every movement of cash is a sale. Change-fund top-ups,
withdrawals and small expenses paid out of the drawer are recorded here
and folded into the expected balance.

RULES:
- Entries are created only while the session is open
- amount is strictly positive cents; the sign lives in type
- Editing is permission-gated and asymmetric: manage_cash_entries may
  change every field, edit_cash_entries may only change payment_method
  (other fields in the patch are ignored, not rejected)
- Deleting requires delete_cash_entries
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import LedgerEntry, RegisterSession, EntryType, PaymentMethod
from ..validation import ValidationError, parse_amount_cents, require_text
from cashdesk.time_utils import utcnow
from .concurrency import lock_for_update
from .permission_service import has_capability, require_any_permission, require_permission
from .register_service import SessionNotFoundError, SessionNotOpenError


MANAGE_ENTRIES = "manage_cash_entries"
EDIT_ENTRIES = "edit_cash_entries"
DELETE_ENTRIES = "delete_cash_entries"

# Fields a patch may touch, by capability
FULL_EDIT_FIELDS = ("type", "amount", "description", "payment_method")
PAYMENT_ONLY_FIELDS = ("payment_method",)


class LedgerError(Exception):
    """Raised for ledger operation errors."""
    pass


class EntryNotFoundError(LedgerError):
    pass


def parse_entry_type(value) -> str:
    if value not in EntryType.ALL:
        raise ValidationError("type must be 'income' or 'expense'")
    return value


def parse_payment_method(value) -> str:
    """Canonical payment method for a ledger entry. Missing means cash."""
    if value is None:
        return PaymentMethod.CASH
    if not isinstance(value, str):
        raise ValidationError("payment_method must be a string")
    aliases = current_app.config.get("PAYMENT_METHOD_ALIASES", {}).get("ledger", {})
    canonical = aliases.get(value.strip()) or aliases.get(value.strip().lower())
    if canonical not in PaymentMethod.ALL:
        raise ValidationError(
            f"payment_method must be one of: {', '.join(sorted(PaymentMethod.ALL))}"
        )
    return canonical


def editable_fields(actor) -> tuple[str, ...]:
    """Patch fields honored for this actor (empty if they may not edit at all)."""
    if has_capability(actor, MANAGE_ENTRIES):
        return FULL_EDIT_FIELDS
    if has_capability(actor, EDIT_ENTRIES):
        return PAYMENT_ONLY_FIELDS
    return ()


def get_entry(entry_id: int) -> LedgerEntry:
    entry = db.session.get(LedgerEntry, entry_id)
    if entry is None:
        raise EntryNotFoundError(f"Ledger entry {entry_id} not found")
    return entry


def add_entry(
    session_id: int,
    type: str,
    amount,
    description: str,
    payment_method: str | None = PaymentMethod.CASH,
    *,
    created_by_id: int | None = None,
) -> LedgerEntry:
    """
    Record a manual cash movement against an open session.

    Raises:
        ValidationError: Bad type, empty description, unknown payment method
        InvalidAmountError: amount <= 0 or not integer cents
        SessionNotFoundError: Session doesn't exist
        SessionNotOpenError: Session is closed
    """
    entry_type = parse_entry_type(type)
    amount = parse_amount_cents(amount, "amount", allow_zero=False)
    description = require_text(description, "description")
    method = parse_payment_method(payment_method)

    # Serializes against close() on databases that honor FOR UPDATE
    session = lock_for_update(db.session.query(RegisterSession).filter_by(id=session_id)).first()
    if session is None:
        raise SessionNotFoundError(f"Register session {session_id} not found")
    if not session.is_open:
        raise SessionNotOpenError(f"Register session {session_id} is closed")

    entry = LedgerEntry(
        register_id=session_id,
        type=entry_type,
        amount=amount,
        description=description,
        payment_method=method,
        created_by_id=created_by_id,
        created_at=utcnow(),
    )
    db.session.add(entry)
    db.session.commit()
    return entry


def update_entry(entry_id: int, patch: dict, actor) -> LedgerEntry:
    """
    Apply a patch to an entry according to the actor's capability.

    - manage_cash_entries: type, amount, description, payment_method
    - edit_cash_entries: payment_method only; other keys are dropped

    Raises:
        EntryNotFoundError: Entry doesn't exist
        PermissionDeniedError: Actor holds neither capability
        ValidationError / InvalidAmountError: Honored field is invalid
    """
    if not isinstance(patch, dict):
        raise ValidationError("patch must be an object")

    entry = get_entry(entry_id)
    granted = require_any_permission(
        actor,
        (MANAGE_ENTRIES, EDIT_ENTRIES),
        resource=f"ledger_entry:{entry_id}",
        store_id=entry.register_session.store_id,
    )

    allowed = FULL_EDIT_FIELDS if granted == MANAGE_ENTRIES else PAYMENT_ONLY_FIELDS
    changes = {}
    if "type" in patch and "type" in allowed:
        changes["type"] = parse_entry_type(patch["type"])
    if "amount" in patch and "amount" in allowed:
        changes["amount"] = parse_amount_cents(patch["amount"], "amount", allow_zero=False)
    if "description" in patch and "description" in allowed:
        changes["description"] = require_text(patch["description"], "description")
    if "payment_method" in patch and "payment_method" in allowed:
        changes["payment_method"] = parse_payment_method(patch["payment_method"])

    ignored = sorted(set(patch) - set(changes))
    if ignored:
        current_app.logger.debug("Ledger entry %s: ignored patch fields %s", entry_id, ignored)

    if not changes:
        return entry

    for key, value in changes.items():
        setattr(entry, key, value)
    entry.updated_at = utcnow()

    db.session.commit()
    return entry


def delete_entry(entry_id: int, actor) -> None:
    """
    Delete an entry. Requires delete_cash_entries.

    Raises:
        EntryNotFoundError: Entry doesn't exist
        PermissionDeniedError: Actor lacks delete_cash_entries
    """
    entry = get_entry(entry_id)
    require_permission(
        actor,
        DELETE_ENTRIES,
        resource=f"ledger_entry:{entry_id}",
        store_id=entry.register_session.store_id,
    )

    db.session.delete(entry)
    db.session.commit()


def list_entries(session_id: int) -> list[LedgerEntry]:
    """Entries of a session, newest first."""
    if db.session.get(RegisterSession, session_id) is None:
        raise SessionNotFoundError(f"Register session {session_id} not found")

    return db.session.query(LedgerEntry).filter_by(register_id=session_id).order_by(
        LedgerEntry.created_at.desc(),
        LedgerEntry.id.desc(),
    ).all()
