import json
import os
import tempfile
from decimal import Decimal
from types import SimpleNamespace

import pytest
import stripe

# Set test environment variables
os.environ["TESTING"] = "true"
os.environ["KHIDMA_LOG_JSON"] = "true"
os.environ.pop("DATABASE_URL", None)

SITE_URL = "https://khidma.test"
CRON_SECRET = "cron-test-secret"
WEBHOOK_SECRET = "whsec_test"


class FakePayments:
    """In-memory stand-in for StripeGateway, recording every call."""

    def __init__(self):
        self.customers = {}
        self.subscriptions = {}
        self.calls = []
        self.checkout_error = None
        self.capture_error = None

    def find_customer(self, email):
        self.calls.append(("find_customer", email))
        return self.customers.get(email)

    def ensure_customer(self, email, metadata=None):
        customer = self.customers.get(email)
        if customer is None:
            customer = SimpleNamespace(id=f"cus_test_{len(self.customers) + 1}",
                                       email=email, metadata=metadata or {})
            self.customers[email] = customer
        self.calls.append(("ensure_customer", email, metadata))
        return customer.id

    def create_order_checkout(self, **kwargs):
        self.calls.append(("create_order_checkout", kwargs))
        if self.checkout_error is not None:
            raise self.checkout_error
        return SimpleNamespace(id="cs_test_order",
                               url="https://checkout.stripe.com/c/pay/cs_test_order",
                               payment_intent=None)

    def capture_payment(self, payment_intent_id):
        self.calls.append(("capture_payment", payment_intent_id))
        if self.capture_error is not None:
            raise self.capture_error
        return SimpleNamespace(id=payment_intent_id, status="succeeded")

    def cancel_payment(self, payment_intent_id):
        self.calls.append(("cancel_payment", payment_intent_id))
        return SimpleNamespace(id=payment_intent_id, status="canceled")

    def latest_subscription(self, customer_id):
        self.calls.append(("latest_subscription", customer_id))
        return self.subscriptions.get(customer_id)

    def has_active_subscription(self, customer_id):
        sub = self.subscriptions.get(customer_id)
        return sub is not None and sub["status"] == "active"

    def create_subscription_checkout(self, **kwargs):
        self.calls.append(("create_subscription_checkout", kwargs))
        return SimpleNamespace(id="cs_test_sub",
                               url="https://checkout.stripe.com/c/pay/cs_test_sub")

    def construct_event(self, payload, sig_header, secret):
        if sig_header != "valid-signature":
            raise stripe.SignatureVerificationError("No signatures found", sig_header)
        return json.loads(payload)

    def calls_to(self, name):
        return [c for c in self.calls if c[0] == name]


@pytest.fixture
def payments():
    return FakePayments()


@pytest.fixture
def make_app(payments):
    """Build an app on a throwaway SQLite file; extra config via keyword args."""
    created = []

    def _make(**overrides):
        from khidma.factory import create_app

        db_fd, db_path = tempfile.mkstemp()
        created.append((db_fd, db_path))
        config = {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "JWT_SECRET_KEY": "test-jwt-secret-with-enough-bytes-for-hs256",
            "PUBLIC_SITE_URL": SITE_URL,
            "STRIPE_PRICES": {"home_cook": "price_cook_test", "house_worker": "price_worker_test"},
            "STRIPE_WEBHOOK_SECRET": WEBHOOK_SECRET,
            "CRON_SECRET": CRON_SECRET,
            "DIFFERENTIATED_ERRORS": False,
        }
        config.update(overrides)
        return create_app(config_overrides=config, payments=payments)

    yield _make

    for db_fd, db_path in created:
        os.close(db_fd)
        os.unlink(db_path)


@pytest.fixture
def app(make_app):
    """Create and configure a new app instance for each test."""
    from khidma.database import db

    app = make_app()
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """A test client for the app."""
    return app.test_client()


@pytest.fixture
def auth_headers():
    from khidma.infra.auth import issue_token

    def _headers(user):
        return {"Authorization": f"Bearer {issue_token(user)}"}

    return _headers


@pytest.fixture
def customer(app):
    from khidma.database import db
    from khidma.models import User

    user = User(email="client@example.com", full_name="Amina Client")
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def cook(app):
    from khidma.database import db
    from khidma.models import HomeCook, User

    user = User(email="cook@example.com", full_name="Fatima Cook")
    db.session.add(user)
    db.session.flush()
    cook = HomeCook(user_id=user.id, location="Rabat", delivery_available=True)
    cook.start_trial(30)
    db.session.add(cook)
    db.session.commit()
    return cook


@pytest.fixture
def dish(app, cook):
    from khidma.database import db
    from khidma.models import FoodDish

    dish = FoodDish(cook_id=cook.id, name="Couscous", category="main", price=Decimal("50.00"))
    db.session.add(dish)
    db.session.commit()
    return dish


@pytest.fixture
def paid_order(app, customer, cook, dish):
    """Order whose checkout completed: funds authorized, awaiting confirmations."""
    from khidma.database import db
    from khidma.models import FoodOrder

    order = FoodOrder(
        client_id=customer.id,
        cook_id=cook.id,
        dish_id=dish.id,
        quantity=3,
        unit_price=Decimal("50.00"),
        total_amount=Decimal("150.00"),
        platform_fee=Decimal("15.00"),
        cook_amount=Decimal("135.00"),
        status="paid",
        payment_status="authorized",
        stripe_checkout_session_id="cs_test_order",
        stripe_payment_intent_id="pi_test_123",
    )
    db.session.add(order)
    db.session.commit()
    return order
