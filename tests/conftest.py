import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from pos_engine import create_app
from pos_engine.database import get_session
from pos_engine.models import CatalogItem, CustomerRecord, EventBus
from pos_engine.services.cart_service import CartLedger
from pos_engine.services.catalog_service import InMemoryCatalog, InMemoryCustomerStore
from pos_engine.services.settlement_service import SettlementService, TransactionNumberGenerator
from pos_engine.services.shift_service import ShiftCashLedger


class FixedClock:
    """Deterministic clock: every call moves time forward one second."""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 1, 12, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        current = self.now
        self.now = self.now + timedelta(seconds=1)
        return current

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(scope='function')
def app():
    """Create application instance for testing (fresh in-memory database each test)."""
    app = create_app('config.TestingConfig')
    return app


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Create database session for testing."""
    session = get_session()
    yield session
    session.rollback()
    session.remove()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def yoga_mat():
    return CatalogItem(id='mat', name='Yoga Mat', price_cents=4999, available_stock=10, category='equipment')


@pytest.fixture
def yoga_block():
    return CatalogItem(id='block', name='Yoga Block', price_cents=2499, available_stock=5, category='equipment')


@pytest.fixture
def sold_out_strap():
    return CatalogItem(id='strap', name='Yoga Strap', price_cents=1200, available_stock=0, category='equipment')


@pytest.fixture
def catalog(yoga_mat, yoga_block, sold_out_strap):
    return InMemoryCatalog([
        yoga_mat,
        yoga_block,
        sold_out_strap,
        CatalogItem(id='tea', name='Herbal Tea', price_cents=350, available_stock=100, category='drinks'),
    ])


@pytest.fixture
def customer():
    return CustomerRecord(
        id='c-1', name='Asha Rao', loyalty_points=120, lifetime_points=1500, credit_balance_cents=5000
    )


@pytest.fixture
def customers(customer):
    return InMemoryCustomerStore([customer])


@pytest.fixture
def ledger():
    """Cart ledger with the default 18% tax."""
    return CartLedger(tax_percent=Decimal('18'))


@pytest.fixture
def fixture_cart(ledger, yoga_mat, yoga_block):
    """Cart of the worked example: 2 x 49.99 + 1 x 24.99, 10% off, 18% tax."""
    ledger.add_item(yoga_mat, quantity=2)
    ledger.add_item(yoga_block)
    ledger.set_discount_percent(10)
    return ledger


@pytest.fixture
def events():
    return EventBus()


@pytest.fixture
def settlement_service(events, clock):
    return SettlementService(
        events=events,
        clock=clock,
        number_generator=TransactionNumberGenerator(clock=clock),
    )


@pytest.fixture
def shift_ledger(clock):
    return ShiftCashLedger(clock=clock)
