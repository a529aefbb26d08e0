"""
Sales channel adapter tests.

Verifies payment label normalization, the local table adapters and the
HTTP adapter (against httpx.MockTransport).
"""

from datetime import datetime, timedelta

import httpx
import pytest

from cashdesk.models import CounterSale, DeliveryOrder, TableSale, PaymentMethod
from cashdesk.services.sales_channels import (
    CounterSalesAdapter,
    DeliveryOrdersAdapter,
    RemoteSalesChannelAdapter,
    SalesChannelError,
    TableSalesAdapter,
    build_channel_adapters,
    normalize_payment_method,
)


WINDOW_START = datetime(2026, 10, 19, 8, 0, 0)
WINDOW_END = datetime(2026, 10, 19, 18, 0, 0)


# =============================================================================
# PAYMENT LABELS
# =============================================================================


class TestNormalizePaymentMethod:

    @pytest.mark.parametrize("channel,raw,expected", [
        ("counter", "dinheiro", PaymentMethod.CASH),
        ("counter", "DINHEIRO", PaymentMethod.CASH),
        ("counter", " cartao_credito ", PaymentMethod.CREDIT_CARD),
        ("delivery", "money", PaymentMethod.CASH),
        ("delivery", "card", PaymentMethod.CREDIT_CARD),
        ("table", "misto", PaymentMethod.MIXED),
        ("table", "pix", PaymentMethod.PIX),
    ])
    def test_known_labels(self, app, channel, raw, expected):
        assert normalize_payment_method(channel, raw) == expected

    def test_label_is_channel_specific(self, app):
        # "money" is the delivery app's word for cash; the counter never uses it
        assert normalize_payment_method("delivery", "money") == PaymentMethod.CASH
        assert normalize_payment_method("counter", "money") == PaymentMethod.OTHER

    @pytest.mark.parametrize("raw", [None, "", "cheque", "boleto"])
    def test_unknown_labels_are_other(self, app, raw):
        assert normalize_payment_method("counter", raw) == PaymentMethod.OTHER

    def test_explicit_alias_table(self):
        aliases = {"counter": {"especie": "cash"}}
        assert normalize_payment_method("counter", "especie", aliases) == PaymentMethod.CASH
        assert normalize_payment_method("delivery", "especie", aliases) == PaymentMethod.OTHER

    def test_alias_to_unknown_canonical_is_other(self):
        aliases = {"counter": {"especie": "gold"}}
        assert normalize_payment_method("counter", "especie", aliases) == PaymentMethod.OTHER


# =============================================================================
# LOCAL ADAPTERS
# =============================================================================


class TestLocalAdapters:

    def test_counter_excludes_cancelled_and_out_of_window(self, db_session, store, other_store):
        db_session.add_all([
            CounterSale(store_id=store.id, total_amount=100, payment_method="dinheiro", created_at=WINDOW_START),
            CounterSale(store_id=store.id, total_amount=200, payment_method="pix", created_at=WINDOW_START + timedelta(hours=1)),
            CounterSale(store_id=store.id, total_amount=300, payment_method="dinheiro", is_cancelled=True, created_at=WINDOW_START + timedelta(hours=2)),
            CounterSale(store_id=store.id, total_amount=400, payment_method="dinheiro", created_at=WINDOW_END),
            CounterSale(store_id=other_store.id, total_amount=500, payment_method="dinheiro", created_at=WINDOW_START + timedelta(hours=1)),
        ])
        db_session.commit()

        records = CounterSalesAdapter().query(store.id, WINDOW_START, WINDOW_END)

        assert [r.total_amount for r in records] == [100, 200]
        assert [r.payment_method for r in records] == [PaymentMethod.CASH, PaymentMethod.PIX]
        assert records[0].is_cash
        assert all(r.channel == "counter" for r in records)

    def test_delivery_excludes_cancelled_orders(self, db_session, store):
        at = WINDOW_START + timedelta(minutes=30)
        db_session.add_all([
            DeliveryOrder(store_id=store.id, total_amount=1000, payment_method="money", status="delivered", created_at=at),
            DeliveryOrder(store_id=store.id, total_amount=2000, payment_method="money", status="pending", created_at=at),
            DeliveryOrder(store_id=store.id, total_amount=3000, payment_method="money", status="cancelled", created_at=at),
        ])
        db_session.commit()

        records = DeliveryOrdersAdapter().query(store.id, WINDOW_START, WINDOW_END)

        assert sorted(r.total_amount for r in records) == [1000, 2000]
        assert all(r.payment_method == PaymentMethod.CASH for r in records)

    def test_table_counts_only_closed_tabs(self, db_session, store):
        at = WINDOW_START + timedelta(minutes=30)
        db_session.add_all([
            TableSale(store_id=store.id, table_number=1, total_amount=1500, payment_method="dinheiro", status="closed", created_at=at),
            TableSale(store_id=store.id, table_number=2, total_amount=2500, payment_method=None, status="open", created_at=at),
            TableSale(store_id=store.id, table_number=3, total_amount=3500, payment_method="dinheiro", status="cancelled", created_at=at),
        ])
        db_session.commit()

        records = TableSalesAdapter().query(store.id, WINDOW_START, WINDOW_END)

        assert [r.total_amount for r in records] == [1500]


# =============================================================================
# HTTP ADAPTER
# =============================================================================


def _remote(channel, handler, **kwargs):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return RemoteSalesChannelAdapter(
        channel,
        "https://sales.example.test/rest/v1/delivery_orders",
        client=client,
        aliases={"delivery": {"money": "cash", "card": "creditCard"}, "table": {"dinheiro": "cash"}},
        **kwargs,
    )


class TestRemoteAdapter:

    def test_request_filters_and_headers(self):
        seen = {}

        def handler(request):
            seen["params"] = request.url.params
            seen["headers"] = request.headers
            return httpx.Response(200, json=[])

        _remote("delivery", handler, api_key="secret").query(7, WINDOW_START, WINDOW_END)

        assert seen["params"]["store_id"] == "eq.7"
        assert seen["params"].get_list("created_at") == [
            "gte.2026-10-19T08:00:00Z",
            "lt.2026-10-19T18:00:00Z",
        ]
        assert seen["headers"]["apikey"] == "secret"
        assert seen["headers"]["authorization"] == "Bearer secret"

    def test_rows_are_normalized_and_filtered(self):
        rows = [
            {"id": 1, "created_at": "2026-10-19T09:00:00Z", "total_amount": 1250, "payment_method": "money", "status": "delivered"},
            {"id": 2, "created_at": "2026-10-19T09:30:00Z", "total_amount": 990, "payment_method": "card", "status": "pending"},
            {"id": 3, "created_at": "2026-10-19T10:00:00Z", "total_amount": 500, "payment_method": "money", "status": "canceled"},
            {"id": 4, "created_at": "2026-10-19T10:00:00Z", "total_amount": 700, "payment_method": "money", "is_cancelled": True},
            # The source ignored the window filter
            {"id": 5, "created_at": "2026-10-19T18:00:00Z", "total_amount": 800, "payment_method": "money"},
            # Offset timestamps are converted to UTC
            {"id": 6, "created_at": "2026-10-19T07:30:00-03:00", "total_amount": 300, "payment_method": "pix"},
        ]

        records = _remote("delivery", lambda request: httpx.Response(200, json=rows)).query(1, WINDOW_START, WINDOW_END)

        assert [r.id for r in records] == [1, 2, 6]
        assert records[0].payment_method == PaymentMethod.CASH
        assert records[1].payment_method == PaymentMethod.CREDIT_CARD
        assert records[2].payment_method == PaymentMethod.OTHER
        assert records[2].occurred_at == datetime(2026, 10, 19, 10, 30, 0)

    def test_remote_table_requires_closed_status(self):
        rows = [
            {"id": 1, "created_at": "2026-10-19T09:00:00Z", "total_amount": 1000, "payment_method": "dinheiro", "status": "closed"},
            {"id": 2, "created_at": "2026-10-19T09:00:00Z", "total_amount": 2000, "payment_method": "dinheiro", "status": "open"},
        ]

        records = _remote("table", lambda request: httpx.Response(200, json=rows)).query(1, WINDOW_START, WINDOW_END)
        assert [r.id for r in records] == [1]

    def test_http_error_status(self):
        adapter = _remote("delivery", lambda request: httpx.Response(503, json={"message": "down"}))
        with pytest.raises(SalesChannelError):
            adapter.query(1, WINDOW_START, WINDOW_END)

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(SalesChannelError):
            _remote("delivery", handler).query(1, WINDOW_START, WINDOW_END)

    def test_invalid_json(self):
        adapter = _remote("delivery", lambda request: httpx.Response(200, content=b"<html>oops</html>"))
        with pytest.raises(SalesChannelError):
            adapter.query(1, WINDOW_START, WINDOW_END)

    def test_non_list_payload(self):
        adapter = _remote("delivery", lambda request: httpx.Response(200, json={"rows": []}))
        with pytest.raises(SalesChannelError):
            adapter.query(1, WINDOW_START, WINDOW_END)

    @pytest.mark.parametrize("row", [
        {"id": 1, "created_at": "2026-10-19T09:00:00Z", "total_amount": 12.5, "payment_method": "money"},
        {"id": 1, "created_at": "2026-10-19T09:00:00Z", "total_amount": "1250", "payment_method": "money"},
        {"id": 1, "created_at": "2026-10-19T09:00:00Z", "total_amount": True, "payment_method": "money"},
        {"id": 1, "created_at": "not a date", "total_amount": 1250, "payment_method": "money"},
        {"id": 1, "created_at": 1760864400, "total_amount": 1250, "payment_method": "money"},
        {"id": 1, "total_amount": 1250, "payment_method": "money"},
    ])
    def test_malformed_rows(self, row):
        adapter = _remote("delivery", lambda request: httpx.Response(200, json=[row]))
        with pytest.raises(SalesChannelError, match=r"row 1 "):
            adapter.query(1, WINDOW_START, WINDOW_END)


# =============================================================================
# WIRING
# =============================================================================


class TestBuildChannelAdapters:

    def test_local_by_default(self, app):
        adapters = build_channel_adapters()

        assert isinstance(adapters["counter"], CounterSalesAdapter)
        assert isinstance(adapters["delivery"], DeliveryOrdersAdapter)
        assert isinstance(adapters["table"], TableSalesAdapter)

    def test_configured_endpoint_uses_http(self, app, monkeypatch):
        monkeypatch.setitem(app.config, "SALES_CHANNEL_ENDPOINTS", {"delivery": "https://delivery.example.test/orders"})
        monkeypatch.setitem(app.config, "SALES_CHANNEL_API_KEY", "k")

        adapters = build_channel_adapters()

        remote = adapters["delivery"]
        assert isinstance(remote, RemoteSalesChannelAdapter)
        assert remote.base_url == "https://delivery.example.test/orders"
        assert remote.api_key == "k"
        assert remote.timeout == 2.0
        assert isinstance(adapters["counter"], CounterSalesAdapter)
