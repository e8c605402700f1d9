from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from checkout.api import create_app
from checkout.celery_worker import celery_app
from checkout.data.database import Database
from checkout.data.models import CustomerModel, ProductModel
from checkout.domain.errors import ExternalGatewayError
from checkout.domain.owners import Customer, Guest
from checkout.services.payment_gateway import GatewayInitialization, GatewayVerification
from tests.helpers import CUSTOMER_ID, GADGET, GIZMO, OTHER_CUSTOMER_ID, RETIRED, TEN, WIDGET

# run Celery tasks in-process, no broker
celery_app.conf.task_always_eager = True


class FakeGateway:
    """In-memory stand-in for the payment provider."""

    def __init__(self):
        self.transactions = {}
        self.initialized = []
        self.unreachable = False

    def pay(self, reference, order_id, amount, status="success", currency="GHS", metadata=None):
        self.transactions[reference] = GatewayVerification(
            reference=reference,
            status=status,
            amount=Decimal(str(amount)),
            currency=currency,
            channel="card",
            authorization_code=f"AUTH_{reference}",
            metadata={"order_id": order_id} if metadata is None else metadata,
        )

    def initialize(self, email, amount, reference, metadata=None):
        if self.unreachable:
            raise ExternalGatewayError("Payment gateway request failed: timeout")
        self.initialized.append({"email": email, "amount": amount, "reference": reference, "metadata": metadata})
        return GatewayInitialization(
            authorization_url=f"https://checkout.test/{reference}",
            access_code=f"AC_{reference}",
            reference=reference,
        )

    def verify(self, reference):
        if self.unreachable or reference not in self.transactions:
            raise ExternalGatewayError(f"Payment gateway error: transaction {reference} not found")
        return self.transactions[reference]


@pytest.fixture
def database():
    database = Database("sqlite://").open()
    yield database
    database.close()


@pytest.fixture
def session(database):
    session = database.session()
    yield session
    session.close()


@pytest.fixture
def seeded(session):
    session.add_all(
        [
            CustomerModel(id=CUSTOMER_ID, name="Ama Mensah", email="ama@example.com"),
            CustomerModel(id=OTHER_CUSTOMER_ID, name="Kofi Boateng", email="kofi@example.com"),
            ProductModel(id=WIDGET, title="Widget", price=Decimal("5.00"), qty=10),
            ProductModel(id=GADGET, title="Gadget", price=Decimal("9.99"), qty=5),
            ProductModel(id=GIZMO, title="Gizmo", price=Decimal("20.00"), qty=3),
            ProductModel(id=TEN, title="Ten", price=Decimal("10.00"), qty=50),
            ProductModel(id=RETIRED, title="Retired", price=Decimal("1.00"), qty=9, is_active=False),
        ]
    )
    session.commit()
    return session


@pytest.fixture
def customer():
    return Customer(CUSTOMER_ID)


@pytest.fixture
def guest():
    return Guest("a" * 64)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(database, seeded, gateway):
    app = create_app(database=database, gateway=gateway)
    with TestClient(app) as c:
        yield c
