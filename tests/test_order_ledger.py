import re
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from checkout.data.models import PaymentModel
from checkout.domain.errors import NotFoundError, OrderStateConflict, PaymentAmountMismatch, ValidationError
from checkout.domain.results import AlreadyProcessed, PaymentRecorded, PlacedLine
from checkout.repos.order_repo import OrderRepo
from checkout.services.order_ledger import (
    OrderLedger,
    check_amount,
    generate_invoice_number,
    generate_order_reference,
)
from tests.helpers import CUSTOMER_ID, GADGET, OTHER_CUSTOMER_ID, WIDGET


def payment_count(session):
    return session.execute(select(func.count(PaymentModel.id))).scalar_one()


@pytest.fixture
def ledger(seeded):
    return OrderLedger(seeded)


@pytest.fixture
def order(ledger):
    return ledger.place_order(
        CUSTOMER_ID,
        [
            PlacedLine(product_id=WIDGET, qty=3, price=Decimal("5.00")),
            PlacedLine(product_id=GADGET, qty=1, price=Decimal("9.99")),
        ],
    )


def test_place_order_derives_total_from_lines(seeded, order):
    assert order.order_total == Decimal("24.99")
    assert order.order_status == "pending"
    assert [(l.product_id, l.qty) for l in OrderRepo(seeded).get_lines(order.id)] == [(WIDGET, 3), (GADGET, 1)]


def test_place_order_requires_lines(ledger):
    with pytest.raises(ValidationError):
        ledger.place_order(CUSTOMER_ID, [])


def test_references_are_unique():
    references = {generate_order_reference() for _ in range(500)}
    assert len(references) == 500
    assert all(re.fullmatch(r"ORD-\d+-[A-Z0-9]{6}", r) for r in references)
    assert generate_invoice_number().startswith("INV-")


def test_check_amount_tolerates_one_cent():
    check_amount(Decimal("24.98"), Decimal("24.99"))
    with pytest.raises(PaymentAmountMismatch):
        check_amount(Decimal("24.97"), Decimal("24.99"))


def test_record_payment_confirms_order(seeded, ledger, order):
    result = ledger.record_payment(CUSTOMER_ID, order.id, Decimal("24.99"), "GHS", "TXN-1")

    assert isinstance(result, PaymentRecorded)
    assert result.transaction_ref == "TXN-1"
    assert re.fullmatch(r"INV-\d+-[A-Z0-9]{6}", result.invoice_no)

    stored = OrderRepo(seeded).get_order(order.id)
    assert stored.order_status == "confirmed"
    assert stored.invoice_no == result.invoice_no
    assert payment_count(seeded) == 1


def test_record_payment_twice_writes_once(seeded, ledger, order):
    first = ledger.record_payment(CUSTOMER_ID, order.id, Decimal("24.99"), "GHS", "TXN-1")
    second = ledger.record_payment(CUSTOMER_ID, order.id, Decimal("24.99"), "GHS", "TXN-1")

    assert isinstance(second, AlreadyProcessed)
    assert payment_count(seeded) == 1
    assert OrderRepo(seeded).get_order(order.id).invoice_no == first.invoice_no


def test_second_reference_for_paid_order_is_already_processed(seeded, ledger, order):
    ledger.record_payment(CUSTOMER_ID, order.id, Decimal("24.99"), "GHS", "TXN-1")

    result = ledger.record_payment(CUSTOMER_ID, order.id, Decimal("24.99"), "GHS", "TXN-2")

    assert isinstance(result, AlreadyProcessed)
    assert payment_count(seeded) == 1


def test_amount_mismatch_writes_nothing(seeded, ledger, order):
    with pytest.raises(PaymentAmountMismatch) as exc:
        ledger.record_payment(CUSTOMER_ID, order.id, Decimal("20.00"), "GHS", "TXN-1")

    assert exc.value.expected == Decimal("24.99")
    assert payment_count(seeded) == 0
    assert OrderRepo(seeded).get_order(order.id).order_status == "pending"


def test_record_payment_checks_ownership(ledger, order):
    with pytest.raises(PermissionError):
        ledger.record_payment(OTHER_CUSTOMER_ID, order.id, Decimal("24.99"), "GHS", "TXN-1")


def test_record_payment_for_unknown_order(ledger):
    with pytest.raises(NotFoundError):
        ledger.record_payment(CUSTOMER_ID, 999, Decimal("1.00"), "GHS", "TXN-1")


def test_record_payment_for_cancelled_order(seeded, ledger, order):
    OrderRepo(seeded).update_status(order.id, "cancelled", None)
    seeded.commit()

    with pytest.raises(OrderStateConflict):
        ledger.record_payment(CUSTOMER_ID, order.id, Decimal("24.99"), "GHS", "TXN-1")
    assert payment_count(seeded) == 0


def test_unique_reference_breaks_the_race(seeded, ledger, order, monkeypatch):
    other = ledger.place_order(CUSTOMER_ID, [PlacedLine(product_id=WIDGET, qty=1, price=Decimal("5.00"))])
    ledger.record_payment(CUSTOMER_ID, order.id, Decimal("24.99"), "GHS", "TXN-1")

    # a concurrent writer that passed the pre-check before the first commit
    monkeypatch.setattr(ledger.payments, "find_existing", lambda order_id, ref: None)
    result = ledger.record_payment(CUSTOMER_ID, other.id, Decimal("5.00"), "GHS", "TXN-1")

    assert isinstance(result, AlreadyProcessed)
    assert payment_count(seeded) == 1
    stored = OrderRepo(seeded).get_order(other.id)
    assert stored.order_status == "pending"
    assert stored.invoice_no is None
