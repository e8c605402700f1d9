# checkout/services/order_service.py
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from checkout.data.models.order import OrderModel
from checkout.domain.errors import InvalidStatusError, NotFoundError, OrderStateConflict, ValidationError
from checkout.domain.results import InsufficientStock, StatusUpdated
from checkout.repos.order_repo import OrderRepo
from checkout.repos.payment_repo import PaymentRepo
from checkout.services.fulfillment import FulfillmentEngine
from checkout.services.order_status import (
    CANCELLED,
    ORDER_STATUSES,
    PAID_STATUSES,
    get_timeline,
    validate_status,
)
from checkout.utils.money import round_money
from checkout.utils.logging import get_logger

logger = get_logger(__name__)


class OrderService:
    """
    Order queries for customers and admins, and the admin status update.
    """

    def __init__(self, db: Session):
        self.repo = OrderRepo(db)
        self.payments = PaymentRepo(db)
        self.fulfillment = FulfillmentEngine(db)

    def _summary(self, order: OrderModel) -> Dict[str, Any]:
        payment = self.payments.get_by_order(order.id)
        return {
            "id": order.id,
            "customer_id": order.customer_id,
            "order_reference": order.order_reference,
            "order_total": order.order_total,
            "order_status": order.order_status,
            "invoice_no": order.invoice_no,
            "tracking_notes": order.tracking_notes,
            "needs_reconciliation": order.needs_reconciliation,
            "order_date": order.order_date,
            "updated_at": order.updated_at,
            "payment_status": payment.payment_status if payment else None,
        }

    def get_order(self, order_id: int, customer_id: int | None = None) -> Dict[str, Any]:
        """
        Order with lines, payment and status timeline. Without a customer id
        (admin) ownership is not checked.
        """
        order = self.repo.get_order(order_id)
        if not order:
            raise NotFoundError(f"Order {order_id} does not exist")

        if customer_id is not None and order.customer_id != customer_id:
            raise PermissionError("Order belongs to another customer")

        payment = self.payments.get_by_order(order_id)
        lines = [
            {
                "product_id": row.product_id,
                "title": row.title,
                "qty": row.qty,
                "price": row.price,
                "line_total": round_money(row.price * row.qty),
            }
            for row in self.repo.get_lines_with_stock(order_id)
        ]

        detail = self._summary(order)
        detail["lines"] = lines
        detail["payment"] = (
            {
                "pay_id": payment.id,
                "amt": payment.amt,
                "currency": payment.currency,
                "transaction_ref": payment.transaction_ref,
                "payment_status": payment.payment_status,
                "payment_method": payment.payment_method,
                "payment_channel": payment.payment_channel,
                "created_at": payment.created_at,
            }
            if payment
            else None
        )
        detail["timeline"] = get_timeline(order.order_status, order.order_date, order.updated_at, order.tracking_notes)
        return detail

    def list_customer_orders(self, customer_id: int, limit: int = 50) -> List[Dict[str, Any]]:
        return [self._summary(o) for o in self.repo.list_by_customer(customer_id, limit)]

    def list_orders(self, limit: int = 100) -> List[Dict[str, Any]]:
        return [self._summary(o) for o in self.repo.list_all(limit)]

    def reconciliation_queue(self) -> List[Dict[str, Any]]:
        return [self._summary(o) for o in self.repo.list_flagged()]

    def get_statistics(self) -> Dict[str, Any]:
        stats = {status: 0 for status in ORDER_STATUSES}
        values = {status: Decimal("0.00") for status in ORDER_STATUSES}

        for row in self.repo.status_totals():
            if row.order_status in stats:
                stats[row.order_status] = int(row.count)
                values[row.order_status] = round_money(row.total_value)

        return {"stats": stats, "values": values}

    def update_status(
        self, order_id: int, new_status: str, notes: str | None = None
    ) -> StatusUpdated | InsufficientStock:
        """
        Admin transition. Any listed status is accepted, except that an
        unpaid order cannot enter a paid status. Cancelling a paid order
        puts its stock back; reviving a paid cancelled order takes the
        stock again.
        """
        new_status = validate_status(new_status)

        order = self.repo.get_order(order_id)
        if not order:
            raise NotFoundError(f"Order {order_id} does not exist")

        previous = order.order_status
        paid = self.payments.get_by_order(order_id) is not None

        if new_status in PAID_STATUSES and not paid:
            raise InvalidStatusError(f"Order {order_id} has no recorded payment, it cannot be {new_status}")

        restored = reserved = False
        try:
            # compare-and-set on the status gates the stock movement below
            tracking_notes = notes if notes is not None else order.tracking_notes
            if self.repo.update_status(order_id, new_status, tracking_notes, expected_status=previous) == 0:
                self.repo.rollback()
                raise OrderStateConflict(order_id, self.repo.get_order(order_id).order_status)

            if paid and previous != CANCELLED and new_status == CANCELLED:
                self.fulfillment.restore(order_id)
                restored = True
            elif paid and previous == CANCELLED and new_status != CANCELLED:
                result = self.fulfillment.fulfill(order_id)
                if isinstance(result, InsufficientStock):
                    self.repo.rollback()
                    logger.info(f"Order {order_id} cannot leave {CANCELLED}: stock is insufficient")
                    return result
                reserved = True

            self.repo.commit()
        except (SQLAlchemyError, NotFoundError, ValidationError):
            self.repo.rollback()
            raise

        order = self.repo.get_order(order_id)
        logger.info(
            f"Order {order_id} status {previous} -> {new_status}"
            f"{' (stock restored)' if restored else ''}{' (stock reserved)' if reserved else ''}"
        )
        return StatusUpdated(
            order_id=order_id,
            previous_status=previous,
            order_status=order.order_status,
            tracking_notes=order.tracking_notes,
            stock_restored=restored,
            stock_reserved=reserved,
            updated_at=order.updated_at,
        )

    def resolve_reconciliation(self, order_id: int, notes: str | None = None) -> Dict[str, Any]:
        """
        Takes an order out of the reconciliation queue once the captured
        payment has been refunded or settled by hand.
        """
        order = self.repo.get_order(order_id)
        if not order:
            raise NotFoundError(f"Order {order_id} does not exist")

        tracking_notes = "\n".join(filter(None, [order.tracking_notes, notes]))
        try:
            if self.repo.clear_reconciliation(order_id, tracking_notes or None) == 0:
                self.repo.rollback()
                raise OrderStateConflict(order_id, "not flagged for reconciliation")
            self.repo.commit()
        except SQLAlchemyError:
            self.repo.rollback()
            raise

        logger.info(f"Order {order_id} reconciliation resolved")
        return self._summary(self.repo.get_order(order_id))
