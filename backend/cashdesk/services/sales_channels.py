# Overview: Read-only sales channel adapters; normalize channel rows into SaleRecords.

"""
Sales Channel Adapters

WHY: Counter, delivery and table service are three independent systems
with their own tables and their own payment labels. The reconciliation
calculator sees none of that: every adapter returns SaleRecords whose
payment_method is already a canonical PaymentMethod value.

CONTRACT:
- query(store_id, window_start, window_end) returns non-cancelled sales
  with window_start <= occurred_at < window_end (half-open)
- Adapters never write
- Any failure is raised; isolation is the caller's job
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import httpx
from flask import current_app

from ..extensions import db
from ..models import CounterSale, DeliveryOrder, TableSale, SalesChannel, PaymentMethod
from cashdesk.time_utils import parse_iso_datetime, to_utc_z


class SalesChannelError(Exception):
    """Raised when a channel cannot be read or returns malformed rows."""
    pass


@dataclass(frozen=True)
class SaleRecord:
    id: Any
    channel: str
    occurred_at: datetime
    total_amount: int  # cents
    payment_method: str  # canonical PaymentMethod value
    cancelled: bool = False

    @property
    def is_cash(self) -> bool:
        return self.payment_method == PaymentMethod.CASH


def normalize_payment_method(channel: str, raw: str | None, aliases: dict | None = None) -> str:
    """
    Map a channel-specific payment label to a canonical PaymentMethod.

    Labels missing from the channel's alias table become "other" and
    therefore never count as cash.
    """
    if raw is None:
        return PaymentMethod.OTHER
    if aliases is None:
        aliases = current_app.config.get("PAYMENT_METHOD_ALIASES", {})
    table = aliases.get(channel, {})

    label = str(raw).strip()
    canonical = table.get(label) or table.get(label.lower())
    if canonical in PaymentMethod.ALL:
        return canonical
    return PaymentMethod.OTHER


class SalesChannelAdapter(ABC):
    """Contract every sales channel source implements."""

    channel: str = ""

    def __init__(self, aliases: dict | None = None):
        self.aliases = aliases

    def normalize_method(self, raw: str | None) -> str:
        return normalize_payment_method(self.channel, raw, self.aliases)

    @abstractmethod
    def query(self, store_id: int, window_start: datetime, window_end: datetime) -> list[SaleRecord]:
        """Non-cancelled sales of store_id in [window_start, window_end)."""
        pass


# =============================================================================
# LOCAL TABLE ADAPTERS
# =============================================================================

class CounterSalesAdapter(SalesChannelAdapter):
    channel = SalesChannel.COUNTER

    def query(self, store_id, window_start, window_end):
        rows = db.session.query(CounterSale).filter(
            CounterSale.store_id == store_id,
            CounterSale.is_cancelled.is_(False),
            CounterSale.created_at >= window_start,
            CounterSale.created_at < window_end,
        ).order_by(CounterSale.created_at.asc(), CounterSale.id.asc()).all()

        return [
            SaleRecord(
                id=row.id,
                channel=self.channel,
                occurred_at=row.created_at,
                total_amount=row.total_amount,
                payment_method=self.normalize_method(row.payment_method),
            )
            for row in rows
        ]


class DeliveryOrdersAdapter(SalesChannelAdapter):
    channel = SalesChannel.DELIVERY

    def query(self, store_id, window_start, window_end):
        rows = db.session.query(DeliveryOrder).filter(
            DeliveryOrder.store_id == store_id,
            DeliveryOrder.status != DeliveryOrder.CANCELLED,
            DeliveryOrder.created_at >= window_start,
            DeliveryOrder.created_at < window_end,
        ).order_by(DeliveryOrder.created_at.asc(), DeliveryOrder.id.asc()).all()

        return [
            SaleRecord(
                id=row.id,
                channel=self.channel,
                occurred_at=row.created_at,
                total_amount=row.total_amount,
                payment_method=self.normalize_method(row.payment_method),
            )
            for row in rows
        ]


class TableSalesAdapter(SalesChannelAdapter):
    """Only settled (closed) tabs are sales; open tabs have not been paid yet."""

    channel = SalesChannel.TABLE

    def query(self, store_id, window_start, window_end):
        rows = db.session.query(TableSale).filter(
            TableSale.store_id == store_id,
            TableSale.status == TableSale.CLOSED,
            TableSale.created_at >= window_start,
            TableSale.created_at < window_end,
        ).order_by(TableSale.created_at.asc(), TableSale.id.asc()).all()

        return [
            SaleRecord(
                id=row.id,
                channel=self.channel,
                occurred_at=row.created_at,
                total_amount=row.total_amount,
                payment_method=self.normalize_method(row.payment_method),
            )
            for row in rows
        ]


# =============================================================================
# REMOTE ADAPTER
# =============================================================================

class RemoteSalesChannelAdapter(SalesChannelAdapter):
    """
    Reads a channel from an HTTP source returning a JSON list of rows
    (PostgREST-style filters: store_id=eq.1&created_at=gte....).

    Expected row shape:
        {"id": ..., "created_at": "...Z", "total_amount": 1250,
         "payment_method": "money", "status": "delivered", "is_cancelled": false}

    total_amount must be integer cents; anything else is a malformed row.
    """

    CANCELLED_STATUSES = {"cancelled", "canceled"}

    def __init__(
        self,
        channel: str,
        base_url: str,
        *,
        api_key: str | None = None,
        timeout: float = 5.0,
        client: httpx.Client | None = None,
        aliases: dict | None = None,
    ):
        super().__init__(aliases)
        self.channel = channel
        self.base_url = base_url
        self.api_key = api_key
        self.timeout = timeout
        self.client = client

    def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def fetch_rows(self, store_id: int, window_start: datetime, window_end: datetime) -> list[dict]:
        params = [
            ("store_id", f"eq.{store_id}"),
            ("created_at", f"gte.{to_utc_z(window_start)}"),
            ("created_at", f"lt.{to_utc_z(window_end)}"),
            ("order", "created_at.asc"),
        ]
        try:
            if self.client is not None:
                response = self.client.get(self.base_url, params=params, headers=self._headers(), timeout=self.timeout)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.get(self.base_url, params=params, headers=self._headers())
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            raise SalesChannelError(f"{self.channel} channel request failed: {exc}") from exc
        except ValueError as exc:
            raise SalesChannelError(f"{self.channel} channel returned invalid JSON") from exc

        if not isinstance(payload, list):
            raise SalesChannelError(f"{self.channel} channel returned {type(payload).__name__}, expected list")
        return payload

    def is_cancelled(self, row: dict) -> bool:
        if row.get("is_cancelled"):
            return True
        status = row.get("status")
        if status is None:
            return False
        status = str(status).lower()
        if self.channel == SalesChannel.TABLE:
            return status != TableSale.CLOSED
        return status in self.CANCELLED_STATUSES

    def normalize_row(self, row: dict) -> SaleRecord:
        amount = row.get("total_amount")
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise SalesChannelError(f"{self.channel} row {row.get('id')} has non-integer total_amount")
        created_at = row.get("created_at")
        if created_at is not None and not isinstance(created_at, str):
            raise SalesChannelError(f"{self.channel} row {row.get('id')} has invalid created_at")
        try:
            occurred_at = parse_iso_datetime(created_at)
        except ValueError as exc:
            raise SalesChannelError(f"{self.channel} row {row.get('id')} has invalid created_at") from exc
        if occurred_at is None:
            raise SalesChannelError(f"{self.channel} row {row.get('id')} is missing created_at")

        return SaleRecord(
            id=row.get("id"),
            channel=self.channel,
            occurred_at=occurred_at,
            total_amount=amount,
            payment_method=self.normalize_method(row.get("payment_method")),
            cancelled=self.is_cancelled(row),
        )

    def query(self, store_id, window_start, window_end):
        records = [self.normalize_row(row) for row in self.fetch_rows(store_id, window_start, window_end)]
        # The source may ignore filters; the window and cancellation are enforced here too
        return [
            record for record in records
            if not record.cancelled and window_start <= record.occurred_at < window_end
        ]


def build_channel_adapters() -> dict[str, SalesChannelAdapter]:
    """
    One adapter per channel, from app config.

    Channels with an entry in SALES_CHANNEL_ENDPOINTS are read over HTTP;
    the rest read the local tables.
    """
    config = current_app.config
    endpoints = config.get("SALES_CHANNEL_ENDPOINTS") or {}
    aliases = config.get("PAYMENT_METHOD_ALIASES")
    timeout = config.get("SALES_CHANNEL_TIMEOUT_SECONDS", 5.0)

    local = {
        SalesChannel.COUNTER: CounterSalesAdapter,
        SalesChannel.DELIVERY: DeliveryOrdersAdapter,
        SalesChannel.TABLE: TableSalesAdapter,
    }

    adapters: dict[str, SalesChannelAdapter] = {}
    for channel in SalesChannel.ALL:
        url = endpoints.get(channel)
        if url:
            adapters[channel] = RemoteSalesChannelAdapter(
                channel,
                url,
                api_key=config.get("SALES_CHANNEL_API_KEY"),
                timeout=timeout,
                aliases=aliases,
            )
        else:
            adapters[channel] = local[channel](aliases)
    return adapters
