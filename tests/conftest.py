import os
import tempfile
from decimal import Decimal
from itertools import count

import pytest

# Set test environment variables
os.environ["TESTING"] = "true"
os.environ.setdefault("WEDDINGPAY_LOG_JSON", "false")

from weddingpay import extensions
from weddingpay.factory import create_app
from weddingpay.infra.db import db
from weddingpay.models import Coupon, Customer, Gift, GiftReservation, Product
from weddingpay.services.asaas_gateway import CardCharge, PixCharge
from weddingpay.services.audit import MemoryAuditTrail
from weddingpay.services.notifications import NotificationDispatcher
from weddingpay.services.retry import RetryPolicy

WEBHOOK_TOKEN = "whsec-test-token"


class FakeGateway:
    """Stands in for the Asaas adapter; records calls and returns canned charges."""

    def __init__(self):
        self._ids = count(1)
        self.pix_calls = []
        self.card_calls = []
        self.card_status = "CONFIRMED"
        self.statuses = {}
        self.error = None

    def _next_id(self):
        return f"pay_{next(self._ids):06d}"

    def create_pix_charge(self, order, customer):
        if self.error is not None:
            raise self.error
        self.pix_calls.append((order.id, customer.email))
        return PixCharge(
            gateway_payment_id=self._next_id(),
            status="PENDING",
            qr_payload="00020126580014br.gov.bcb.pix",
            qr_image="iVBORw0KGgo=",
        )

    def create_card_charge(self, order, customer, card, remote_ip):
        if self.error is not None:
            raise self.error
        self.card_calls.append((order.id, customer.email, card.installment_count, remote_ip))
        payment_id = self._next_id()
        return CardCharge(
            gateway_payment_id=payment_id,
            status=self.card_status,
            raw={"id": payment_id, "status": self.card_status, "authorizationCode": "AUTH123"},
        )

    def get_payment_status(self, gateway_payment_id):
        return self.statuses.get(gateway_payment_id, "PENDING")


@pytest.fixture
def app():
    """Create and configure a new app instance for each test."""
    db_fd, db_path = tempfile.mkstemp(suffix=".db")
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
        "ASAAS_API_URL": "https://sandbox.asaas.test/api/v3",
        "ASAAS_API_KEY": "test-key",
        "ASAAS_WEBHOOK_TOKEN": WEBHOOK_TOKEN,
        "WEDDINGPAY_AUDIT_PERSIST": False,
        "WEDDINGPAY_LOG_JSON": False,
    })

    enqueued = []
    app.extensions[extensions.GATEWAY] = FakeGateway()
    app.extensions[extensions.AUDIT] = MemoryAuditTrail()
    app.extensions[extensions.NOTIFIER] = NotificationDispatcher(
        enqueue=lambda job, *args, **kwargs: enqueued.append((job.__name__, args)))
    app.extensions[extensions.RETRY_POLICY] = RetryPolicy(max_attempts=3, initial_delay=0)
    app.extensions["test.enqueued"] = enqueued

    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()
    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture
def client(app):
    """A test client for the app."""
    return app.test_client()


@pytest.fixture
def session(app):
    return db.session


@pytest.fixture
def gateway(app):
    return app.extensions[extensions.GATEWAY]


@pytest.fixture
def audit(app):
    return app.extensions[extensions.AUDIT]


@pytest.fixture
def enqueued(app):
    return app.extensions["test.enqueued"]


@pytest.fixture
def make_product(session):
    def _make(product_id, price, status="active", name=None, bundle_ids=None):
        product = Product(
            id=product_id,
            name=name or product_id.replace("-", " ").title(),
            price=Decimal(str(price)),
            status=status,
            is_bundle=bundle_ids is not None,
            bundle_product_ids=bundle_ids,
        )
        session.add(product)
        session.commit()
        return product
    return _make


@pytest.fixture
def make_coupon(session):
    def _make(code, discount_type, value, active=True):
        coupon = Coupon(code=code, discount_type=discount_type, value=Decimal(str(value)), active=active)
        session.add(coupon)
        session.commit()
        return coupon
    return _make


@pytest.fixture
def make_customer(session):
    def _make(customer_id, email, cpf, access=None, name="Ana Souza"):
        customer = Customer(id=customer_id, email=email, cpf=cpf, name=name,
                            phone="11999990000", access=list(access or []))
        session.add(customer)
        session.commit()
        return customer
    return _make


@pytest.fixture
def make_gift(session):
    def _make(price=200, quantity_wanted=2, reservation_quantity=1, payment_id="pay_gift_1"):
        gift = Gift(name="Jogo de panelas", price=Decimal(str(price)), quantity_wanted=quantity_wanted)
        session.add(gift)
        session.flush()
        reservation = GiftReservation(
            gift_id=gift.id,
            guest_name="Carlos",
            guest_email="carlos@example.com",
            quantity=reservation_quantity,
            total_price=Decimal(str(price)) * reservation_quantity,
            gateway_payment_id=payment_id,
        )
        session.add(reservation)
        session.commit()
        return gift, reservation
    return _make


@pytest.fixture
def checkout_body():
    return _checkout_body


def _checkout_body(**overrides):
    payload = {
        "name": "Ana Souza",
        "email": "ana@example.com",
        "cpf": "123.456.789-09",
        "whatsapp": "(11) 99999-0000",
        "productIds": ["planner", "site-premium"],
        "paymentMethod": "PIX",
    }
    payload.update(overrides)
    return payload
