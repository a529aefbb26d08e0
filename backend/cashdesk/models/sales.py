from __future__ import annotations

from ..extensions import db
from cashdesk.time_utils import to_utc_z, utcnow


class SalesChannel:
    """The three independent sales-origination systems folded into a register."""
    COUNTER = "counter"
    DELIVERY = "delivery"
    TABLE = "table"

    ALL = (COUNTER, DELIVERY, TABLE)


class CounterSale(db.Model):
    """
    Point-of-sale counter sale.

    Read-only from the register's point of view. payment_method holds the
    raw label the counter screen recorded (e.g. "dinheiro").
    """
    __tablename__ = "counter_sales"
    __table_args__ = (
        db.Index("ix_counter_sales_store_created", "store_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    operator_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    total_amount = db.Column(db.Integer, nullable=False)  # cents
    payment_method = db.Column(db.String(32), nullable=False)

    is_cancelled = db.Column(db.Boolean, nullable=False, default=False, index=True)
    cancel_reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "operator_id": self.operator_id,
            "total_amount": self.total_amount,
            "payment_method": self.payment_method,
            "is_cancelled": self.is_cancelled,
            "cancel_reason": self.cancel_reason,
            "created_at": to_utc_z(self.created_at),
        }


class DeliveryOrder(db.Model):
    """
    Delivery order.

    STATUS: pending, confirmed, preparing, out_for_delivery, delivered, cancelled.
    Everything except cancelled counts as a sale.
    """
    __tablename__ = "delivery_orders"
    __table_args__ = (
        db.Index("ix_delivery_orders_store_created", "store_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    CANCELLED = "cancelled"

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    customer_name = db.Column(db.String(128), nullable=True)
    total_amount = db.Column(db.Integer, nullable=False)  # cents
    payment_method = db.Column(db.String(32), nullable=False)
    status = db.Column(db.String(32), nullable=False, default="pending", index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "customer_name": self.customer_name,
            "total_amount": self.total_amount,
            "payment_method": self.payment_method,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }


class TableSale(db.Model):
    """
    Dine-in tab.

    STATUS: open (still consuming), closed (bill paid), cancelled.
    Only closed tabs are settled sales; open tabs carry no payment yet.
    """
    __tablename__ = "table_sales"
    __table_args__ = (
        db.Index("ix_table_sales_store_created", "store_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    OPEN = "open"
    CLOSED = "closed"
    CANCELLED = "cancelled"

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    table_number = db.Column(db.Integer, nullable=False)
    total_amount = db.Column(db.Integer, nullable=False, default=0)  # cents
    payment_method = db.Column(db.String(32), nullable=True)  # set when the tab is paid
    status = db.Column(db.String(16), nullable=False, default=OPEN, index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    closed_at = db.Column(db.DateTime, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "table_number": self.table_number,
            "total_amount": self.total_amount,
            "payment_method": self.payment_method,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "closed_at": to_utc_z(self.closed_at),
        }
