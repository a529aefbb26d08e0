from __future__ import annotations

from sqlalchemy import event, inspect

from ..extensions import db
from cashdesk.time_utils import to_utc_z, utcnow


class EntryType:
    """Direction of a manual cash movement. The sign lives here, never in amount."""
    INCOME = "income"
    EXPENSE = "expense"

    ALL = frozenset({INCOME, EXPENSE})


class PaymentMethod:
    """Canonical payment methods. Channel-specific labels are normalized to these."""
    CASH = "cash"
    PIX = "pix"
    CREDIT_CARD = "creditCard"
    DEBIT_CARD = "debitCard"
    VOUCHER = "voucher"
    MIXED = "mixed"
    OTHER = "other"

    ALL = frozenset({CASH, PIX, CREDIT_CARD, DEBIT_CARD, VOUCHER, MIXED, OTHER})


class ClosedSessionImmutableError(Exception):
    """Raised when something tries to rewrite a closed register session."""


class RegisterSession(db.Model):
    """
    One cash drawer being open for business, from counted opening float
    to counted closing float.

    LIFECYCLE:
    - OPEN: closed_at, closing_amount and difference are NULL
    - CLOSED: all three are set together, in a single conditional UPDATE

    There is no CLOSED -> OPEN transition; reopening means a new session.

    INVARIANT: at most one open session per store. Enforced by the partial
    unique index below, not only by the service pre-check.

    All amounts are integer minor units (cents).
    """
    __tablename__ = "register_sessions"
    __table_args__ = (
        db.Index(
            "uq_register_sessions_store_open",
            "store_id",
            unique=True,
            sqlite_where=db.text("closed_at IS NULL"),
            postgresql_where=db.text("closed_at IS NULL"),
        ),
        db.Index("ix_register_sessions_store_opened", "store_id", "opened_at"),
        db.CheckConstraint("opening_amount >= 0", name="ck_register_sessions_opening_non_negative"),
        db.CheckConstraint(
            "(closed_at IS NULL AND closing_amount IS NULL AND difference IS NULL)"
            " OR (closed_at IS NOT NULL AND closing_amount IS NOT NULL AND difference IS NOT NULL)",
            name="ck_register_sessions_close_fields_together",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    # Nullable only for backfilled historical sessions
    operator_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    closed_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    opening_amount = db.Column(db.Integer, nullable=False, default=0)
    opened_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    # Set once, at close
    closing_amount = db.Column(db.Integer, nullable=True)
    closed_at = db.Column(db.DateTime, nullable=True)
    difference = db.Column(db.Integer, nullable=True)  # closing_amount - expected balance

    notes = db.Column(db.Text, nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    store = db.relationship("Store", backref=db.backref("register_sessions", lazy=True))
    operator = db.relationship("User", foreign_keys=[operator_id], backref=db.backref("register_sessions", lazy=True))
    closed_by = db.relationship("User", foreign_keys=[closed_by_id])
    __mapper_args__ = {"version_id_col": version_id}

    # Fields frozen once closed_at is set
    FROZEN_FIELDS = ("store_id", "opening_amount", "opened_at", "closing_amount", "closed_at", "difference")

    @property
    def is_open(self) -> bool:
        return self.closed_at is None

    @property
    def status(self) -> str:
        return "OPEN" if self.is_open else "CLOSED"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "operator_id": self.operator_id,
            "closed_by_id": self.closed_by_id,
            "status": self.status,
            "opening_amount": self.opening_amount,
            "opened_at": to_utc_z(self.opened_at),
            "closing_amount": self.closing_amount,
            "closed_at": to_utc_z(self.closed_at),
            "difference": self.difference,
            "notes": self.notes,
            "version_id": self.version_id,
        }


@event.listens_for(RegisterSession, "before_update")
def _guard_closed_session_update(mapper, connection, target):
    state = inspect(target)
    history = state.attrs.closed_at.load_history()
    original = history.deleted or history.unchanged
    if not original or original[0] is None:
        return
    changed = [name for name in RegisterSession.FROZEN_FIELDS if state.attrs[name].history.has_changes()]
    if changed:
        raise ClosedSessionImmutableError(
            f"Register session {target.id} is closed; cannot change {', '.join(changed)}"
        )


@event.listens_for(RegisterSession, "before_delete")
def _guard_closed_session_delete(mapper, connection, target):
    if target.closed_at is not None:
        raise ClosedSessionImmutableError(f"Register session {target.id} is closed and cannot be deleted")


class LedgerEntry(db.Model):
    """
    Manual cash movement (not a sale) recorded against a register session:
    change-fund top-ups, withdrawals, small expenses paid from the drawer.

    amount is strictly positive cents; direction comes from type.
    Created only while the parent session is open. Later edits are
    permission-gated in the ledger service.
    """
    __tablename__ = "ledger_entries"
    __table_args__ = (
        db.Index("ix_ledger_entries_register_created", "register_id", "created_at"),
        db.CheckConstraint("amount > 0", name="ck_ledger_entries_amount_positive"),
        db.CheckConstraint("type IN ('income', 'expense')", name="ck_ledger_entries_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    register_id = db.Column(db.Integer, db.ForeignKey("register_sessions.id"), nullable=False, index=True)

    type = db.Column(db.String(16), nullable=False)
    amount = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=False)
    payment_method = db.Column(db.String(16), nullable=False, default=PaymentMethod.CASH)

    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=True)

    register_session = db.relationship("RegisterSession", backref=db.backref("ledger_entries", lazy=True))
    created_by = db.relationship("User")

    @property
    def is_cash(self) -> bool:
        return self.payment_method == PaymentMethod.CASH

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "register_id": self.register_id,
            "type": self.type,
            "amount": self.amount,
            "description": self.description,
            "payment_method": self.payment_method,
            "created_by_id": self.created_by_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
