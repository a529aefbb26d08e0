# Overview: Service-layer operations for reconciliation; folds channel sales and cash entries into a session summary.

"""
Register Reconciliation

WHY: The drawer should hold
    opening_amount + cash sales (all channels) + cash income - cash expense
and the closing difference is what was counted minus that.

DESIGN PRINCIPLES:
- Integer cents only; no float ever touches a total
- Window is half-open: [opened_at, closed_at or now)
- Each channel is queried independently, concurrently, with its own
  deadline. A failed or slow channel counts as zero and marks the summary
  degraded; it never blocks or aborts the summary
- Read-only: summarize() never writes the session
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field
from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import RegisterSession, LedgerEntry, EntryType, PaymentMethod, SalesChannel
from .sales_channels import SaleRecord, SalesChannelAdapter, SalesChannelError, build_channel_adapters
from cashdesk.time_utils import to_utc_z, utcnow


@dataclass
class ChannelTotals:
    channel: str
    total: int = 0
    cash_total: int = 0
    count: int = 0
    failed: bool = False
    error: str | None = None

    def add(self, record: SaleRecord) -> None:
        self.total += record.total_amount
        self.count += 1
        if record.is_cash:
            self.cash_total += record.total_amount

    def to_dict(self) -> dict:
        return {
            "channel": self.channel,
            "total": self.total,
            "cash_total": self.cash_total,
            "count": self.count,
            "failed": self.failed,
            "error": self.error,
        }


@dataclass
class ReconciliationSummary:
    session_id: int
    store_id: int
    window_start: datetime
    window_end: datetime
    is_closed: bool
    opening_amount: int
    channels: dict[str, ChannelTotals]
    other_income_total: int
    cash_income_total: int
    total_expense: int
    cash_expense_total: int
    entry_count: int
    expected_balance: int
    closing_amount: int | None = None
    difference: int | None = None
    recorded_difference: int | None = None
    failed_channels: list[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.failed_channels)

    @property
    def sales_total(self) -> int:
        return sum(c.total for c in self.channels.values())

    @property
    def cash_sales_total(self) -> int:
        return sum(c.cash_total for c in self.channels.values())

    @property
    def sales_count(self) -> int:
        return sum(c.count for c in self.channels.values())

    @property
    def channel_counts(self) -> dict[str, int]:
        return {name: c.count for name, c in self.channels.items()}

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "store_id": self.store_id,
            "window_start": to_utc_z(self.window_start),
            "window_end": to_utc_z(self.window_end),
            "is_closed": self.is_closed,
            "opening_amount": self.opening_amount,
            "channels": {name: c.to_dict() for name, c in self.channels.items()},
            "sales_total": self.sales_total,
            "cash_sales_total": self.cash_sales_total,
            "sales_count": self.sales_count,
            "channel_counts": self.channel_counts,
            "other_income_total": self.other_income_total,
            "cash_income_total": self.cash_income_total,
            "total_expense": self.total_expense,
            "cash_expense_total": self.cash_expense_total,
            "entry_count": self.entry_count,
            "expected_balance": self.expected_balance,
            "closing_amount": self.closing_amount,
            "difference": self.difference,
            "recorded_difference": self.recorded_difference,
            "degraded": self.degraded,
            "failed_channels": list(self.failed_channels),
        }


def compute_expected_balance(opening_amount: int, cash_sales: int, cash_income: int, cash_expense: int) -> int:
    """Cash the drawer should hold. All arguments are cents."""
    return opening_amount + cash_sales + cash_income - cash_expense


_executor: ThreadPoolExecutor | None = None
_executor_lock = threading.Lock()


def _get_executor(max_workers: int) -> ThreadPoolExecutor:
    """Process-wide pool for channel queries, created on first use."""
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="sales-channel")
        return _executor


def _run_adapter(
    app,
    adapter: SalesChannelAdapter,
    channel: str,
    store_id: int,
    window_start: datetime,
    window_end: datetime,
) -> ChannelTotals:
    """
    Query one channel and total it on the worker.

    Any bad record raises here, so it fails this channel only.
    """
    # Worker threads need their own app context (and therefore their own DB session)
    with app.app_context():
        channel_totals = ChannelTotals(channel=channel)
        for record in adapter.query(store_id, window_start, window_end):
            if record.cancelled:
                continue
            if not (window_start <= record.occurred_at < window_end):
                continue
            amount = record.total_amount
            if isinstance(amount, bool) or not isinstance(amount, int):
                raise SalesChannelError(f"{channel} record {record.id} has non-integer total_amount")
            channel_totals.add(record)
        return channel_totals


def collect_channel_totals(
    adapters: dict[str, SalesChannelAdapter],
    store_id: int,
    window_start: datetime,
    window_end: datetime,
    timeout: float,
) -> dict[str, ChannelTotals]:
    """
    Fan out one query per channel and fan the results back in.

    Every channel in SalesChannel.ALL gets a ChannelTotals. A channel with
    no adapter, a raising adapter, a malformed record, or one still running
    at its deadline is reported failed with zero totals.

    Queries run on a shared pool of SALES_CHANNEL_MAX_WORKERS threads. A
    query past its deadline is abandoned but keeps its worker until it
    returns; when the pool is saturated, new queries wait in the queue and
    count against their own deadline.
    """
    app = current_app._get_current_object()
    logger = current_app.logger
    totals = {channel: ChannelTotals(channel=channel) for channel in SalesChannel.ALL}

    for channel in SalesChannel.ALL:
        if channel not in adapters:
            totals[channel].failed = True
            totals[channel].error = "no adapter configured"
            logger.warning("Sales channel %s has no adapter; counted as zero", channel)

    active = {channel: adapter for channel, adapter in adapters.items() if channel in totals}
    if not active:
        return totals

    executor = _get_executor(current_app.config.get("SALES_CHANNEL_MAX_WORKERS", 12))
    started = time.monotonic()
    futures = {
        channel: executor.submit(_run_adapter, app, adapter, channel, store_id, window_start, window_end)
        for channel, adapter in active.items()
    }

    for channel, future in futures.items():
        # All futures were submitted together, so each one's deadline is started + timeout
        remaining = max(0.0, started + timeout - time.monotonic())
        try:
            totals[channel] = future.result(timeout=remaining)
        except FuturesTimeoutError:
            future.cancel()
            totals[channel].failed = True
            totals[channel].error = f"timed out after {timeout:g}s"
            logger.warning("Sales channel %s timed out after %ss (store %s)", channel, timeout, store_id)
        except Exception as exc:
            totals[channel].failed = True
            totals[channel].error = f"{exc.__class__.__name__}: {exc}"
            logger.warning("Sales channel %s failed (store %s): %s", channel, store_id, exc)

    return totals


def ledger_totals(session_id: int) -> dict[str, int]:
    """Split the session's entries by type and by cash."""
    entries = db.session.query(LedgerEntry).filter_by(register_id=session_id).all()

    result = {
        "income": 0,
        "cash_income": 0,
        "expense": 0,
        "cash_expense": 0,
        "count": len(entries),
    }
    for entry in entries:
        is_cash = entry.payment_method == PaymentMethod.CASH
        if entry.type == EntryType.INCOME:
            result["income"] += entry.amount
            if is_cash:
                result["cash_income"] += entry.amount
        elif entry.type == EntryType.EXPENSE:
            result["expense"] += entry.amount
            if is_cash:
                result["cash_expense"] += entry.amount
    return result


def summarize(
    session: RegisterSession,
    *,
    adapters: dict[str, SalesChannelAdapter] | None = None,
    now: datetime | None = None,
    timeout: float | None = None,
) -> ReconciliationSummary:
    """
    Compute the financial summary of a register session.

    For an open session the window ends at `now` (default: current UTC time),
    so the expected balance is live. For a closed session it ends at
    closed_at and `difference` is recomputed against closing_amount;
    `recorded_difference` is the value frozen at close.

    Args:
        session: The register session to summarize
        adapters: Channel -> adapter map (default: from app config)
        now: Window end for open sessions
        timeout: Per-channel deadline in seconds (default: SALES_CHANNEL_TIMEOUT_SECONDS)
    """
    if adapters is None:
        adapters = build_channel_adapters()
    if timeout is None:
        timeout = current_app.config.get("SALES_CHANNEL_TIMEOUT_SECONDS", 5.0)

    window_start = session.opened_at
    if session.closed_at is not None:
        window_end = session.closed_at
    else:
        window_end = now if now is not None else utcnow()

    channels = collect_channel_totals(adapters, session.store_id, window_start, window_end, timeout)
    ledger = ledger_totals(session.id)

    cash_sales = sum(c.cash_total for c in channels.values())
    expected = compute_expected_balance(
        session.opening_amount,
        cash_sales,
        ledger["cash_income"],
        ledger["cash_expense"],
    )

    summary = ReconciliationSummary(
        session_id=session.id,
        store_id=session.store_id,
        window_start=window_start,
        window_end=window_end,
        is_closed=session.closed_at is not None,
        opening_amount=session.opening_amount,
        channels=channels,
        other_income_total=ledger["income"],
        cash_income_total=ledger["cash_income"],
        total_expense=ledger["expense"],
        cash_expense_total=ledger["cash_expense"],
        entry_count=ledger["count"],
        expected_balance=expected,
        failed_channels=[name for name, c in channels.items() if c.failed],
    )

    if session.closed_at is not None:
        summary.closing_amount = session.closing_amount
        summary.difference = session.closing_amount - expected
        summary.recorded_difference = session.difference

    return summary
