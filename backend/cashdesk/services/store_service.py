from __future__ import annotations

from cashdesk.extensions import db
from cashdesk.models import Store
from cashdesk.services.concurrency import run_with_retry


class StoreError(Exception):
    """Raised when store operations fail."""
    pass


def create_store(name: str, code: str) -> Store:
    def _op():
        if not name or not name.strip():
            raise StoreError("Store name is required")
        if not code or not code.strip():
            raise StoreError("Store code is required")

        existing = db.session.query(Store).filter_by(code=code.strip()).first()
        if existing:
            raise StoreError(f"Store code '{code}' already exists")

        store = Store(name=name.strip(), code=code.strip())

        db.session.add(store)
        db.session.commit()
        return store

    return run_with_retry(_op)


def list_stores(*, active_only: bool = True) -> list[Store]:
    query = db.session.query(Store)
    if active_only:
        query = query.filter(Store.is_active.is_(True))
    return query.order_by(Store.name.asc()).all()
