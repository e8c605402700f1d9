from decimal import Decimal

import pytest

from checkout.domain.errors import InvalidStatusError, NotFoundError, OrderStateConflict, ValidationError
from checkout.domain.results import AlreadyProcessed, InsufficientStock, StatusUpdated
from checkout.repos.order_repo import OrderRepo
from checkout.repos.product_repo import ProductRepo
from checkout.services.order_ledger import OrderLedger
from checkout.services.order_service import OrderService
from checkout.services.payment_service import PaymentService
from tests.helpers import CUSTOMER_ID, GIZMO, OTHER_CUSTOMER_ID, WIDGET, place_order, stock


@pytest.fixture
def pending(seeded, customer):
    return place_order(seeded, customer, (WIDGET, 3))


@pytest.fixture
def paid(seeded, gateway, pending):
    gateway.pay("TXN-PAID", pending.order_id, pending.order_total)
    PaymentService(seeded, gateway).verify_and_settle("TXN-PAID")
    return pending


def test_get_order_details(seeded, paid):
    detail = OrderService(seeded).get_order(paid.order_id, CUSTOMER_ID)

    assert detail["order_status"] == "confirmed"
    assert detail["payment_status"] == "completed"
    assert detail["payment"]["transaction_ref"] == "TXN-PAID"
    assert detail["lines"] == [
        {"product_id": WIDGET, "title": "Widget", "qty": 3, "price": Decimal("5.00"), "line_total": Decimal("15.00")}
    ]
    assert detail["timeline"][1].is_current


def test_get_order_checks_ownership(seeded, pending):
    svc = OrderService(seeded)
    with pytest.raises(PermissionError):
        svc.get_order(pending.order_id, OTHER_CUSTOMER_ID)
    with pytest.raises(NotFoundError):
        svc.get_order(999)
    # admins read any order
    assert svc.get_order(pending.order_id)["id"] == pending.order_id


def test_list_customer_orders(seeded, pending):
    svc = OrderService(seeded)
    assert [o["id"] for o in svc.list_customer_orders(CUSTOMER_ID)] == [pending.order_id]
    assert svc.list_customer_orders(OTHER_CUSTOMER_ID) == []


def test_statistics_include_every_status(seeded, paid, customer):
    place_order(seeded, customer, (GIZMO, 1))

    result = OrderService(seeded).get_statistics()

    assert result["stats"] == {
        "pending": 1,
        "confirmed": 1,
        "processing": 0,
        "shipped": 0,
        "delivered": 0,
        "cancelled": 0,
    }
    assert result["values"]["confirmed"] == Decimal("15.00")
    assert result["values"]["pending"] == Decimal("20.00")
    assert result["values"]["shipped"] == Decimal("0.00")


def test_forward_update_with_notes(seeded, paid):
    result = OrderService(seeded).update_status(paid.order_id, "Shipped", "Courier: GhanaPost")

    assert isinstance(result, StatusUpdated)
    assert (result.previous_status, result.order_status) == ("confirmed", "shipped")
    assert result.tracking_notes == "Courier: GhanaPost"
    assert not result.stock_restored
    assert stock(seeded, WIDGET) == 7


def test_invalid_status(seeded, pending):
    with pytest.raises(InvalidStatusError):
        OrderService(seeded).update_status(pending.order_id, "refunded")


def test_unknown_order(seeded):
    with pytest.raises(NotFoundError):
        OrderService(seeded).update_status(999, "shipped")


def test_unpaid_order_cannot_enter_paid_status(seeded, pending):
    with pytest.raises(InvalidStatusError):
        OrderService(seeded).update_status(pending.order_id, "confirmed")
    assert OrderRepo(seeded).get_order(pending.order_id).order_status == "pending"


def test_paid_order_back_to_pending_keeps_stock_and_payment(seeded, gateway, paid):
    result = OrderService(seeded).update_status(paid.order_id, "pending")

    assert (result.previous_status, result.order_status) == ("confirmed", "pending")
    assert stock(seeded, WIDGET) == 7
    replay = PaymentService(seeded, gateway).verify_and_settle("TXN-PAID")
    assert isinstance(replay, AlreadyProcessed)
    assert stock(seeded, WIDGET) == 7


def test_cancel_unpaid_order_leaves_stock(seeded, pending):
    result = OrderService(seeded).update_status(pending.order_id, "cancelled")

    assert result.order_status == "cancelled"
    assert not result.stock_restored
    assert stock(seeded, WIDGET) == 10


def test_cancel_paid_order_restores_stock_once(seeded, paid):
    svc = OrderService(seeded)

    first = svc.update_status(paid.order_id, "cancelled", "Customer request")
    second = svc.update_status(paid.order_id, "cancelled")

    assert first.stock_restored
    assert not second.stock_restored
    assert stock(seeded, WIDGET) == 10
    assert second.tracking_notes == "Customer request"


def test_reviving_paid_cancelled_order_takes_stock_again(seeded, paid):
    svc = OrderService(seeded)
    svc.update_status(paid.order_id, "cancelled")

    result = svc.update_status(paid.order_id, "processing")

    assert result.stock_reserved
    assert stock(seeded, WIDGET) == 7


def test_reviving_without_stock_keeps_order_cancelled(seeded, paid):
    svc = OrderService(seeded)
    svc.update_status(paid.order_id, "cancelled")
    ProductRepo(seeded).decrement_stock(WIDGET, 9)
    seeded.commit()

    result = svc.update_status(paid.order_id, "confirmed")

    assert isinstance(result, InsufficientStock)
    assert OrderRepo(seeded).get_order(paid.order_id).order_status == "cancelled"
    assert stock(seeded, WIDGET) == 1


def test_concurrent_status_change_is_detected(seeded, paid, monkeypatch):
    svc = OrderService(seeded)
    monkeypatch.setattr(svc.repo, "update_status", lambda *args, **kwargs: 0)

    with pytest.raises(OrderStateConflict):
        svc.update_status(paid.order_id, "cancelled")
    assert stock(seeded, WIDGET) == 7


def test_reconciliation_queue_and_resolution(seeded, pending):
    OrderRepo(seeded).flag_reconciliation(pending.order_id, "RECONCILE: payment TXN-A captured")
    seeded.commit()
    svc = OrderService(seeded)

    [flagged] = svc.reconciliation_queue()
    assert flagged["id"] == pending.order_id
    assert flagged["needs_reconciliation"] is True

    resolved = svc.resolve_reconciliation(pending.order_id, "Refunded TXN-A")

    assert resolved["needs_reconciliation"] is False
    assert resolved["tracking_notes"] == "RECONCILE: payment TXN-A captured\nRefunded TXN-A"
    assert svc.reconciliation_queue() == []


def test_resolving_an_unflagged_order(seeded, pending):
    svc = OrderService(seeded)
    with pytest.raises(OrderStateConflict):
        svc.resolve_reconciliation(pending.order_id)
    with pytest.raises(NotFoundError):
        svc.resolve_reconciliation(999)


def test_failed_restore_leaves_status_untouched(seeded):
    # a paid order whose lines are missing cannot have its stock restored
    ledger = OrderLedger(seeded)
    order = ledger.create_order(CUSTOMER_ID, "ORD-1-NOLINE", Decimal("5.00"))
    seeded.commit()
    ledger.record_payment(CUSTOMER_ID, order.id, Decimal("5.00"), "GHS", "TXN-NOLINE")

    with pytest.raises(ValidationError):
        OrderService(seeded).update_status(order.id, "cancelled")

    assert OrderRepo(seeded).get_order(order.id).order_status == "confirmed"
