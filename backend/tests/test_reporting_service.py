"""
Register session report tests.

Verifies the fold of per-session summaries and the report filters.
"""

from datetime import datetime, timedelta

import pytest

from cashdesk.models import RegisterSession, LedgerEntry
from cashdesk.services.reporting_service import ReportError, register_sessions_report
from cashdesk.time_utils import utcnow

from conftest import FailingAdapter, sale, static_adapters


def _closed_session(store_id, operator_id, opened_at, opening, closing, difference):
    return RegisterSession(
        store_id=store_id,
        operator_id=operator_id,
        opening_amount=opening,
        opened_at=opened_at,
        closed_at=opened_at + timedelta(hours=8),
        closing_amount=closing,
        difference=difference,
    )


@pytest.fixture
def history(db_session, store, cashier, manager):
    """Two closed days and one open session."""
    day1 = datetime(2026, 5, 30, 11, 0, 0)
    day2 = datetime(2026, 5, 31, 11, 0, 0)

    first = _closed_session(store.id, cashier.id, day1, 10000, 15000, 0)
    second = _closed_session(store.id, manager.id, day2, 20000, 18000, -1000)
    current = RegisterSession(
        store_id=store.id,
        operator_id=cashier.id,
        opening_amount=5000,
        opened_at=utcnow() - timedelta(minutes=30),
    )
    db_session.add_all([first, second, current])
    db_session.commit()

    db_session.add(LedgerEntry(
        register_id=first.id, type="income", amount=5000, description="Top-up",
        payment_method="cash", created_at=day1 + timedelta(hours=1),
    ))
    db_session.add(LedgerEntry(
        register_id=second.id, type="expense", amount=1000, description="Cleaning",
        payment_method="cash", created_at=day2 + timedelta(hours=1),
    ))
    db_session.commit()

    return {"first": first, "second": second, "current": current, "day1": day1, "day2": day2}


class TestRegisterSessionsReport:

    def test_all_sessions_newest_first(self, store, history):
        report = register_sessions_report(store_id=store.id, adapters=static_adapters())

        ids = [row["session"]["id"] for row in report["sessions"]]
        assert ids == [history["current"].id, history["second"].id, history["first"].id]

    def test_totals_fold(self, store, history):
        report = register_sessions_report(store_id=store.id, adapters=static_adapters())
        totals = report["totals"]

        assert totals["session_count"] == 3
        assert totals["open_count"] == 1
        assert totals["closed_count"] == 2
        assert totals["opening_amount"] == 35000
        assert totals["cash_income_total"] == 5000
        assert totals["cash_expense_total"] == 1000
        # 15000 + 19000 + 5000 (live)
        assert totals["expected_balance"] == 39000
        assert totals["closing_amount"] == 33000
        assert totals["difference"] == -1000
        assert totals["degraded_count"] == 0

    def test_channel_sales_are_folded(self, store, history):
        adapters = static_adapters(
            counter=[sale("counter", history["day1"] + timedelta(hours=2), 3000)],
            delivery=[sale("delivery", history["day2"] + timedelta(hours=2), 4000, method="pix")],
        )

        totals = register_sessions_report(store_id=store.id, adapters=adapters)["totals"]

        assert totals["channels"]["counter"] == {"total": 3000, "cash_total": 3000, "count": 1}
        assert totals["channels"]["delivery"] == {"total": 4000, "cash_total": 0, "count": 1}
        assert totals["sales_total"] == 7000
        assert totals["cash_sales_total"] == 3000
        assert totals["sales_count"] == 2

    def test_status_filter(self, store, history):
        open_only = register_sessions_report(store_id=store.id, status="open", adapters=static_adapters())
        closed_only = register_sessions_report(store_id=store.id, status="closed", adapters=static_adapters())

        assert [r["session"]["id"] for r in open_only["sessions"]] == [history["current"].id]
        assert len(closed_only["sessions"]) == 2
        assert closed_only["totals"]["open_count"] == 0

    def test_operator_filter(self, store, manager, history):
        report = register_sessions_report(store_id=store.id, operator_id=manager.id, adapters=static_adapters())
        assert [r["session"]["id"] for r in report["sessions"]] == [history["second"].id]

    def test_date_only_end_covers_whole_day(self, store, history):
        report = register_sessions_report(
            store_id=store.id, start="2026-05-30", end="2026-05-30", adapters=static_adapters(),
        )

        assert [r["session"]["id"] for r in report["sessions"]] == [history["first"].id]
        assert report["filters"]["end_exclusive"] is True
        assert report["filters"]["end"] == "2026-05-31T00:00:00Z"

    def test_datetime_end_is_inclusive(self, store, history):
        report = register_sessions_report(
            store_id=store.id, end="2026-05-31T11:00:00Z", adapters=static_adapters(),
        )
        ids = [r["session"]["id"] for r in report["sessions"]]
        assert ids == [history["second"].id, history["first"].id]

    def test_degraded_sessions_counted(self, store, history):
        adapters = static_adapters()
        adapters["delivery"] = FailingAdapter("delivery")

        report = register_sessions_report(store_id=store.id, status="closed", adapters=adapters)

        assert report["totals"]["degraded_count"] == 2
        assert all(row["summary"]["degraded"] for row in report["sessions"])

    def test_other_store_is_excluded(self, other_store, history):
        report = register_sessions_report(store_id=other_store.id, adapters=static_adapters())
        assert report["sessions"] == []
        assert report["totals"]["session_count"] == 0

    def test_invalid_status(self, store):
        with pytest.raises(ReportError):
            register_sessions_report(store_id=store.id, status="pending", adapters=static_adapters())

    def test_invalid_date(self, store):
        with pytest.raises(ReportError):
            register_sessions_report(store_id=store.id, start="yesterday", adapters=static_adapters())

    def test_start_after_end(self, store):
        with pytest.raises(ReportError):
            register_sessions_report(
                store_id=store.id, start="2026-06-02", end="2026-06-01", adapters=static_adapters(),
            )

    def test_unknown_store(self, db_session):
        with pytest.raises(ReportError):
            register_sessions_report(store_id=404, adapters=static_adapters())
