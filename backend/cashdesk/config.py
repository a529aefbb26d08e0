# backend/cashdesk/config.py
from __future__ import annotations
import os


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/cashdesk.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///cashdesk.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Each channel query inside a reconciliation gets its own deadline (seconds)
    SALES_CHANNEL_TIMEOUT_SECONDS = _float_env("SALES_CHANNEL_TIMEOUT_SECONDS", 5.0)

    # Shared pool for channel queries. A query still running past its deadline
    # keeps its worker (and DB connection) until it returns, so this caps both
    SALES_CHANNEL_MAX_WORKERS = int(os.environ.get("SALES_CHANNEL_MAX_WORKERS", "12"))

    # Channels with a URL are read over HTTP instead of the local tables
    SALES_CHANNEL_ENDPOINTS = {
        channel: url
        for channel, url in (
            ("counter", os.environ.get("COUNTER_CHANNEL_URL")),
            ("delivery", os.environ.get("DELIVERY_CHANNEL_URL")),
            ("table", os.environ.get("TABLE_CHANNEL_URL")),
        )
        if url
    }
    SALES_CHANNEL_API_KEY = os.environ.get("SALES_CHANNEL_API_KEY")

    # Raw payment labels per channel -> canonical payment method.
    # Labels not listed here normalize to "other" and never count as cash.
    PAYMENT_METHOD_ALIASES = {
        "counter": {
            "dinheiro": "cash",
            "cash": "cash",
            "pix": "pix",
            "cartao_credito": "creditCard",
            "cartao_debito": "debitCard",
            "voucher": "voucher",
            "misto": "mixed",
        },
        "delivery": {
            "money": "cash",
            "dinheiro": "cash",
            "cash": "cash",
            "pix": "pix",
            "card": "creditCard",
            "credit_card": "creditCard",
            "debit_card": "debitCard",
            "voucher": "voucher",
        },
        "table": {
            "dinheiro": "cash",
            "cash": "cash",
            "pix": "pix",
            "cartao_credito": "creditCard",
            "cartao_debito": "debitCard",
            "voucher": "voucher",
            "misto": "mixed",
        },
        "ledger": {
            "dinheiro": "cash",
            "cash": "cash",
            "pix": "pix",
            "cartao_credito": "creditCard",
            "creditCard": "creditCard",
            "cartao_debito": "debitCard",
            "debitCard": "debitCard",
            "voucher": "voucher",
            "misto": "mixed",
            "mixed": "mixed",
            "other": "other",
        },
    }
