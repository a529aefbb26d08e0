"""
Pytest fixtures for cashdesk backend tests.

Provides the test database, roles/operators, a store, the test client,
and in-memory sales channel adapters.
"""

import threading
from datetime import timedelta

import pytest
from cashdesk import create_app
from cashdesk.extensions import db
from cashdesk.models import Store, RegisterSession, SalesChannel
from cashdesk.services import permission_service
from cashdesk.services.auth_service import create_operator
from cashdesk.services.sales_channels import SaleRecord, SalesChannelAdapter
from cashdesk.time_utils import utcnow


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """
    Create application for testing.

    Uses a SQLite file rather than :memory: because channel queries run
    on worker threads with their own connections.
    """
    db_path = tmp_path_factory.mktemp("db") / "cashdesk-test.sqlite3"
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f'sqlite:///{db_path}',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SALES_CHANNEL_ENDPOINTS': {},
        'SALES_CHANNEL_TIMEOUT_SECONDS': 2.0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    # Clear all data but keep schema
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    # Cleanup after test
    db.session.rollback()


@pytest.fixture(scope='function')
def setup_roles(db_session):
    """Setup default roles and permissions."""
    permission_service.bootstrap_permissions()


@pytest.fixture(scope='function')
def store(db_session):
    store = Store(name="Centro", code="CTR")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def other_store(db_session):
    store = Store(name="Praia", code="PRA")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def admin(store, setup_roles):
    return create_operator("ana", "Ana (admin)", store_id=store.id, roles=["admin"])


@pytest.fixture(scope='function')
def manager(store, setup_roles):
    return create_operator("marcos", "Marcos (manager)", store_id=store.id, roles=["manager"])


@pytest.fixture(scope='function')
def cashier(store, setup_roles):
    return create_operator("carla", "Carla (cashier)", store_id=store.id, roles=["cashier"])


def operator_headers(user) -> dict:
    """Helper to identify the acting operator."""
    return {'X-Operator-Id': str(user.id)}


@pytest.fixture(scope='function')
def admin_headers(admin):
    return operator_headers(admin)


@pytest.fixture(scope='function')
def manager_headers(manager):
    return operator_headers(manager)


@pytest.fixture(scope='function')
def cashier_headers(cashier):
    return operator_headers(cashier)


@pytest.fixture(scope='function')
def open_session(db_session, store, cashier):
    """An open session that started an hour ago with 100.00 in the drawer."""
    session = RegisterSession(
        store_id=store.id,
        operator_id=cashier.id,
        opening_amount=10000,
        opened_at=utcnow() - timedelta(hours=1),
    )
    db_session.add(session)
    db_session.commit()
    return session


# =============================================================================
# IN-MEMORY CHANNEL ADAPTERS
# =============================================================================

class StaticAdapter(SalesChannelAdapter):
    """Returns fixed records, filtered to the window like a real source."""

    def __init__(self, channel, records=()):
        super().__init__(aliases={})
        self.channel = channel
        self.records = list(records)
        self.calls = []

    def query(self, store_id, window_start, window_end):
        self.calls.append((store_id, window_start, window_end))
        return [
            r for r in self.records
            if not r.cancelled and window_start <= r.occurred_at < window_end
        ]


class FailingAdapter(SalesChannelAdapter):
    def __init__(self, channel, exc=None):
        super().__init__(aliases={})
        self.channel = channel
        self.exc = exc or ConnectionError(f"{channel} source unreachable")

    def query(self, store_id, window_start, window_end):
        raise self.exc


class BlockingAdapter(SalesChannelAdapter):
    """Blocks until released (or a safety timeout), to exercise deadlines."""

    def __init__(self, channel, hold_seconds=5.0):
        super().__init__(aliases={})
        self.channel = channel
        self.hold_seconds = hold_seconds
        self.release = threading.Event()

    def query(self, store_id, window_start, window_end):
        self.release.wait(self.hold_seconds)
        return []


def sale(channel, occurred_at, amount, method="cash", sale_id=None, cancelled=False):
    return SaleRecord(
        id=sale_id,
        channel=channel,
        occurred_at=occurred_at,
        total_amount=amount,
        payment_method=method,
        cancelled=cancelled,
    )


def static_adapters(counter=(), delivery=(), table=()) -> dict:
    return {
        SalesChannel.COUNTER: StaticAdapter(SalesChannel.COUNTER, counter),
        SalesChannel.DELIVERY: StaticAdapter(SalesChannel.DELIVERY, delivery),
        SalesChannel.TABLE: StaticAdapter(SalesChannel.TABLE, table),
    }
