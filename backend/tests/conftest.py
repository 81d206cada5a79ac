"""
Pytest fixtures for the store backend tests.

Provides the app on an in-memory database, a per-test table wipe, factories
for products and customers, and a test client.
"""

import pytest

from urban_store import create_app
from urban_store.extensions import db
from urban_store.models import Customer, Product
from urban_store.services.messaging import SendResult


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'TWILIO_ACCOUNT_SID': None,
        'TWILIO_AUTH_TOKEN': None,
        'TWILIO_WHATSAPP_FROM': None,
        'NOTIFICATION_DELAY_SECONDS': 0,
        'FRONTEND_URL': 'http://dashboard.test',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()
        db.session.remove()


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: make_product(stock=10, price_cents=1000, ...)."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        data = {
            "sku": f"SKU-{counter['n']:03d}",
            "name": f"Product {counter['n']}",
            "category": "T-Shirts",
            "sizes": ["S", "M", "L"],
            "price_cents": 1000,
            "cost_cents": 500,
            "stock": 10,
        }
        data.update(overrides)
        product = Product(**data)
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def make_customer(db_session):
    """Factory: make_customer(balance_cents=0, ...)."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        data = {
            "name": f"Customer {counter['n']}",
            "whatsapp_number": f"+52 55 0000 {counter['n']:04d}",
            "balance_cents": 0,
            "payment_reminder_sent": False,
        }
        data.update(overrides)
        customer = Customer(**data)
        db_session.add(customer)
        db_session.commit()
        return customer

    return _make


class FakeSender:
    """
    Messaging double.

    outcomes maps a recipient number to True (delivered), False (provider
    rejection) or an Exception instance (raised from send).
    """

    def __init__(self, outcomes=None):
        self.outcomes = outcomes or {}
        self.sent = []

    def send(self, recipient, body):
        self.sent.append((recipient, body))
        outcome = self.outcomes.get(recipient, True)
        if isinstance(outcome, Exception):
            raise outcome
        if outcome:
            return SendResult(success=True, provider_id=f"SM{len(self.sent):04d}")
        return SendResult(success=False, error="Provider rejected message")


@pytest.fixture(scope='function')
def fake_sender():
    return FakeSender()


class RecordedSleep:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture(scope='function')
def recorded_sleep():
    return RecordedSleep()
