# Overview: Service-layer operations for reporting; folds per-session reconciliation summaries.

from __future__ import annotations

from datetime import datetime, timedelta

from ..extensions import db
from ..models import RegisterSession, SalesChannel, Store
from .reconciliation_service import summarize
from .sales_channels import build_channel_adapters
from cashdesk.time_utils import parse_iso_datetime, to_utc_z


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


STATUS_FILTERS = ("all", "open", "closed")


def _is_date_only(value: str | None) -> bool:
    return bool(value) and len(value.strip()) == 10


def _parse_range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None, bool]:
    """
    Parse the opened_at range. Both ends are inclusive.

    A date-only end ("2024-05-31") covers that whole day, so it is turned
    into an exclusive bound at the next midnight; the flag says which.
    """
    try:
        start_dt = parse_iso_datetime(start) if start else None
        end_dt = parse_iso_datetime(end) if end else None
    except ValueError as exc:
        raise ReportError(f"Invalid date: {exc}") from exc

    end_exclusive = False
    if end_dt is not None and _is_date_only(end):
        end_dt = end_dt + timedelta(days=1)
        end_exclusive = True

    if start_dt and end_dt and start_dt > end_dt:
        raise ReportError("start_date must be before end_date")
    return start_dt, end_dt, end_exclusive


def _empty_totals() -> dict:
    return {
        "session_count": 0,
        "open_count": 0,
        "closed_count": 0,
        "degraded_count": 0,
        "opening_amount": 0,
        "channels": {
            channel: {"total": 0, "cash_total": 0, "count": 0}
            for channel in SalesChannel.ALL
        },
        "sales_total": 0,
        "cash_sales_total": 0,
        "sales_count": 0,
        "other_income_total": 0,
        "cash_income_total": 0,
        "total_expense": 0,
        "cash_expense_total": 0,
        "expected_balance": 0,
        "closing_amount": 0,
        "difference": 0,
    }


def _fold(totals: dict, summary) -> dict:
    totals["session_count"] += 1
    if summary.is_closed:
        totals["closed_count"] += 1
        totals["closing_amount"] += summary.closing_amount or 0
        totals["difference"] += summary.difference or 0
    else:
        totals["open_count"] += 1
    if summary.degraded:
        totals["degraded_count"] += 1

    totals["opening_amount"] += summary.opening_amount
    for name, channel in summary.channels.items():
        bucket = totals["channels"][name]
        bucket["total"] += channel.total
        bucket["cash_total"] += channel.cash_total
        bucket["count"] += channel.count

    totals["sales_total"] += summary.sales_total
    totals["cash_sales_total"] += summary.cash_sales_total
    totals["sales_count"] += summary.sales_count
    totals["other_income_total"] += summary.other_income_total
    totals["cash_income_total"] += summary.cash_income_total
    totals["total_expense"] += summary.total_expense
    totals["cash_expense_total"] += summary.cash_expense_total
    totals["expected_balance"] += summary.expected_balance
    return totals


def register_sessions_report(
    *,
    store_id: int,
    start: str | None = None,
    end: str | None = None,
    operator_id: int | None = None,
    status: str = "all",
    adapters=None,
) -> dict:
    """
    Per-session reconciliation summaries for a store plus their fold.

    Filters: opened_at in [start, end] (inclusive), operator, status
    (all | open | closed). Sessions are newest first. Open sessions are
    summarized live, so their figures move until they close.
    """
    if status not in STATUS_FILTERS:
        raise ReportError(f"status must be one of: {', '.join(STATUS_FILTERS)}")

    store = db.session.get(Store, store_id)
    if not store:
        raise ReportError("Store not found")

    start_dt, end_dt, end_exclusive = _parse_range(start, end)

    query = db.session.query(RegisterSession).filter(RegisterSession.store_id == store_id)
    if start_dt is not None:
        query = query.filter(RegisterSession.opened_at >= start_dt)
    if end_dt is not None:
        if end_exclusive:
            query = query.filter(RegisterSession.opened_at < end_dt)
        else:
            query = query.filter(RegisterSession.opened_at <= end_dt)
    if operator_id is not None:
        query = query.filter(RegisterSession.operator_id == operator_id)
    if status == "open":
        query = query.filter(RegisterSession.closed_at.is_(None))
    elif status == "closed":
        query = query.filter(RegisterSession.closed_at.isnot(None))

    sessions = query.order_by(RegisterSession.opened_at.desc(), RegisterSession.id.desc()).all()

    if adapters is None:
        adapters = build_channel_adapters()

    totals = _empty_totals()
    rows = []
    for session in sessions:
        summary = summarize(session, adapters=adapters)
        _fold(totals, summary)
        rows.append({
            "session": session.to_dict(),
            "summary": summary.to_dict(),
        })

    return {
        "store_id": store_id,
        "filters": {
            "start": to_utc_z(start_dt),
            "end": to_utc_z(end_dt),
            "end_exclusive": end_exclusive,
            "operator_id": operator_id,
            "status": status,
        },
        "sessions": rows,
        "totals": totals,
    }
