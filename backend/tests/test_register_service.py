"""
Register session lifecycle tests.

Verifies:
- Only one open session per store, at the service and database level
- Close freezes the difference and is a one-way transition
- Closed sessions cannot be altered or deleted
- Interrupted writes surface as retryable errors with no state change
"""

from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from cashdesk.extensions import db
from cashdesk.models import RegisterSession, ClosedSessionImmutableError
from cashdesk.services import register_service
from cashdesk.services.register_service import (
    AlreadyOpenError,
    NotOpenError,
    RegisterPersistenceError,
    SessionNotFoundError,
    StoreNotFoundError,
)
from cashdesk.validation import InvalidAmountError
from cashdesk.time_utils import utcnow

from conftest import static_adapters


# =============================================================================
# OPEN
# =============================================================================


class TestOpenRegister:

    def test_open_creates_open_session(self, store, cashier):
        session = register_service.open_register(store.id, cashier.id, 10000)

        assert session.id is not None
        assert session.is_open
        assert session.status == "OPEN"
        assert session.opening_amount == 10000
        assert session.closing_amount is None
        assert session.difference is None
        assert register_service.get_current_session(store.id).id == session.id

    def test_zero_opening_amount_is_allowed(self, store, cashier):
        session = register_service.open_register(store.id, cashier.id, 0)
        assert session.opening_amount == 0

    @pytest.mark.parametrize("amount", [-1, 10.5, "12.50", True, None, "1e4"])
    def test_invalid_opening_amount(self, store, cashier, amount):
        with pytest.raises(InvalidAmountError):
            register_service.open_register(store.id, cashier.id, amount)
        assert register_service.get_current_session(store.id) is None

    def test_second_open_fails(self, store, cashier, manager):
        first = register_service.open_register(store.id, cashier.id, 5000)

        with pytest.raises(AlreadyOpenError):
            register_service.open_register(store.id, manager.id, 7000)

        current = register_service.get_current_session(store.id)
        assert current.id == first.id
        assert current.opening_amount == 5000

    def test_open_is_scoped_per_store(self, store, other_store, cashier):
        a = register_service.open_register(store.id, cashier.id, 100)
        b = register_service.open_register(other_store.id, cashier.id, 200)
        assert a.id != b.id

    def test_unknown_store(self, db_session, cashier):
        with pytest.raises(StoreNotFoundError):
            register_service.open_register(9999, cashier.id, 100)

    def test_reopen_after_close_creates_new_session(self, store, cashier):
        first = register_service.open_register(store.id, cashier.id, 100)
        register_service.close_register(first.id, 100, adapters=static_adapters())

        second = register_service.open_register(store.id, cashier.id, 100)
        assert second.id != first.id
        assert second.is_open


class TestSingleOpenConstraint:
    """The database refuses a second open session even if the pre-check is bypassed."""

    def test_partial_unique_index_rejects_second_open_row(self, db_session, store, open_session):
        db_session.add(RegisterSession(store_id=store.id, opening_amount=0, opened_at=utcnow()))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_closed_rows_do_not_conflict(self, db_session, store):
        t0 = utcnow() - timedelta(hours=3)
        for i in range(2):
            db_session.add(RegisterSession(
                store_id=store.id,
                opening_amount=0,
                opened_at=t0 + timedelta(hours=i),
                closed_at=t0 + timedelta(hours=i, minutes=30),
                closing_amount=0,
                difference=0,
            ))
        db_session.commit()
        assert register_service.get_current_session(store.id) is None

    def test_lost_race_maps_to_already_open(self, monkeypatch, store, cashier, open_session):
        """Pre-check sees nothing (the other terminal hasn't committed yet); the index still wins."""
        real = register_service.get_current_session
        calls = {"n": 0}

        def stale_first_read(store_id):
            calls["n"] += 1
            if calls["n"] == 1:
                return None
            return real(store_id)

        monkeypatch.setattr(register_service, "get_current_session", stale_first_read)

        with pytest.raises(AlreadyOpenError):
            register_service.open_register(store.id, cashier.id, 100)

        assert real(store.id).id == open_session.id


# =============================================================================
# CLOSE
# =============================================================================


class TestCloseRegister:

    def test_close_freezes_difference(self, store, cashier, open_session):
        session = register_service.close_register(
            open_session.id,
            9500,
            closed_by_id=cashier.id,
            notes="short",
            adapters=static_adapters(),
        )

        assert not session.is_open
        assert session.closing_amount == 9500
        assert session.difference == -500
        assert session.closed_by_id == cashier.id
        assert session.notes == "short"
        assert session.closed_at is not None
        assert register_service.get_current_session(store.id) is None

    def test_close_twice_fails(self, open_session):
        register_service.close_register(open_session.id, 10000, adapters=static_adapters())

        with pytest.raises(NotOpenError):
            register_service.close_register(open_session.id, 20000, adapters=static_adapters())

        db.session.refresh(open_session)
        assert open_session.closing_amount == 10000
        assert open_session.difference == 0

    def test_close_missing_session(self, db_session):
        with pytest.raises(NotOpenError):
            register_service.close_register(12345, 100, adapters=static_adapters())

    def test_negative_closing_amount(self, open_session):
        with pytest.raises(InvalidAmountError):
            register_service.close_register(open_session.id, -1, adapters=static_adapters())
        db.session.refresh(open_session)
        assert open_session.is_open

    def test_close_bumps_version(self, open_session):
        version = open_session.version_id
        session = register_service.close_register(open_session.id, 10000, adapters=static_adapters())
        assert session.version_id == version + 1


class TestClosedSessionImmutability:

    @pytest.fixture
    def closed(self, open_session):
        return register_service.close_register(open_session.id, 10000, adapters=static_adapters())

    @pytest.mark.parametrize("field,value", [
        ("opening_amount", 1),
        ("closing_amount", 1),
        ("difference", 999),
        ("closed_at", None),
    ])
    def test_frozen_fields(self, db_session, closed, field, value):
        setattr(closed, field, value)
        with pytest.raises(ClosedSessionImmutableError):
            db_session.commit()
        db_session.rollback()

        db_session.refresh(closed)
        assert closed.closing_amount == 10000
        assert closed.difference == 0
        assert closed.closed_at is not None

    def test_cannot_delete_closed_session(self, db_session, closed):
        db_session.delete(closed)
        with pytest.raises(ClosedSessionImmutableError):
            db_session.commit()
        db_session.rollback()
        assert db_session.get(RegisterSession, closed.id) is not None

    def test_notes_remain_editable(self, db_session, closed):
        closed.notes = "recounted, confirmed"
        db_session.commit()
        db_session.refresh(closed)
        assert closed.notes == "recounted, confirmed"


# =============================================================================
# PERSISTENCE FAILURES
# =============================================================================


def _locked(*args, **kwargs):
    raise OperationalError("COMMIT", {}, Exception("database is locked"))


class TestPersistenceFailures:

    def test_open_failure_is_retryable_and_changes_nothing(self, monkeypatch, store, cashier):
        monkeypatch.setattr(db.session, "commit", _locked)

        with pytest.raises(RegisterPersistenceError) as exc_info:
            register_service.open_register(store.id, cashier.id, 100)
        assert exc_info.value.retryable is True

        monkeypatch.undo()
        assert register_service.get_current_session(store.id) is None

    def test_close_failure_leaves_session_open(self, monkeypatch, store, open_session):
        monkeypatch.setattr(db.session, "commit", _locked)

        with pytest.raises(RegisterPersistenceError):
            register_service.close_register(open_session.id, 100, adapters=static_adapters())

        monkeypatch.undo()
        current = register_service.get_current_session(store.id)
        assert current is not None
        assert current.id == open_session.id
        assert current.closing_amount is None


# =============================================================================
# QUERIES
# =============================================================================


class TestSessionQueries:

    def test_get_session_not_found(self, db_session):
        with pytest.raises(SessionNotFoundError):
            register_service.get_session(4242)

    def test_list_sessions_filters_and_orders(self, store, cashier):
        first = register_service.open_register(store.id, cashier.id, 100)
        register_service.close_register(first.id, 100, adapters=static_adapters())
        second = register_service.open_register(store.id, cashier.id, 200)

        all_ids = [s.id for s in register_service.list_sessions(store.id)]
        assert all_ids == [second.id, first.id]

        assert [s.id for s in register_service.list_sessions(store.id, status="open")] == [second.id]
        assert [s.id for s in register_service.list_sessions(store.id, status="closed")] == [first.id]

    def test_list_sessions_rejects_unknown_status(self, store):
        with pytest.raises(ValueError):
            register_service.list_sessions(store.id, status="pending")
