# checkout/services/payment_service.py
import time
from typing import Any, Dict

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from checkout.data.models.order import OrderModel
from checkout.domain.errors import NotFoundError, OrderStateConflict, PaymentNotSuccessful, ValidationError
from checkout.domain.owners import Customer
from checkout.domain.results import (
    AlreadyProcessed,
    InsufficientStock,
    PaymentRecorded,
    ReconciliationRequired,
)
from checkout.repos.cart_repo import CartRepo
from checkout.repos.customer_repo import CustomerRepo
from checkout.repos.order_repo import OrderRepo
from checkout.repos.payment_repo import PaymentRepo
from checkout.services.fulfillment import FulfillmentEngine
from checkout.services.notification_service import NotificationService
from checkout.services.order_ledger import OrderLedger, check_amount
from checkout.services.order_status import PENDING
from checkout.services.payment_gateway import GatewayVerification, PaymentGateway
from checkout.utils.logging import get_logger

logger = get_logger(__name__)

RECONCILE_PREFIX = "RECONCILE:"


def generate_transaction_reference(order_id: int) -> str:
    return f"TXN-{order_id}-{time.time_ns() // 1_000_000}"


class PaymentService:
    """
    Payment initialization and settlement.

    Settlement validates and decrements stock, records the payment and
    confirms the order in a single transaction, so a paid order always has
    its stock taken. When the provider has captured money for an order that
    cannot be settled, the order is flagged for manual reconciliation.
    """

    def __init__(self, db: Session, gateway: PaymentGateway):
        self.gateway = gateway
        self.orders = OrderRepo(db)
        self.payments = PaymentRepo(db)
        self.carts = CartRepo(db)
        self.customers = CustomerRepo(db)
        self.ledger = OrderLedger(db)
        self.fulfillment = FulfillmentEngine(db)

    def _owned_order(self, order_id: int, customer_id: int | None) -> OrderModel:
        order = self.orders.get_order(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} does not exist")
        if customer_id is not None and order.customer_id != customer_id:
            raise PermissionError("Order belongs to another customer")
        return order

    def initialize(self, customer_id: int, order_id: int) -> Dict[str, Any]:
        order = self._owned_order(order_id, customer_id)
        if order.order_status != PENDING or self.payments.get_by_order(order_id) is not None:
            raise OrderStateConflict(order_id, order.order_status)

        customer = self.customers.get_customer(customer_id)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} does not exist")

        reference = generate_transaction_reference(order_id)
        init = self.gateway.initialize(
            customer.email,
            order.order_total,
            reference,
            metadata={
                "order_id": order.id,
                "order_reference": order.order_reference,
                "customer_id": customer_id,
            },
        )
        logger.info(f"Payment {init.reference} initialized for order {order_id}")
        return {
            "order_id": order.id,
            "order_reference": order.order_reference,
            "reference": init.reference,
            "authorization_url": init.authorization_url,
            "access_code": init.access_code,
        }

    def verify_and_settle(
        self, reference: str, customer_id: int | None = None
    ) -> PaymentRecorded | AlreadyProcessed | ReconciliationRequired:
        verification = self.gateway.verify(reference)
        if not verification.succeeded:
            logger.error(f"Payment {reference} not successful: status={verification.status}")
            raise PaymentNotSuccessful(f"Payment {reference} was not successful ({verification.status})")

        raw_order_id = verification.metadata.get("order_id") or verification.metadata.get("orderId")
        try:
            order_id = int(raw_order_id)
        except (TypeError, ValueError):
            logger.error(f"No order id in metadata for payment {reference}: {verification.metadata}")
            raise ValidationError("Invalid payment metadata: order id missing")

        order = self._owned_order(order_id, customer_id)
        try:
            check_amount(verification.amount, order.order_total)
        except ValidationError:
            logger.error(
                f"Amount mismatch for payment {reference}: paid {verification.amount}, "
                f"expected {order.order_total}"
            )
            raise

        return self.settle(order, verification)

    def settle(
        self, order: OrderModel, verification: GatewayVerification
    ) -> PaymentRecorded | AlreadyProcessed | ReconciliationRequired:
        reference = verification.reference

        # races past this check end in IntegrityError on the payment unique keys
        if self.payments.find_existing(order.id, reference) is not None:
            logger.warning(f"Payment already processed for order {order.id}, reference {reference}")
            return AlreadyProcessed(order_id=order.id, transaction_ref=reference)

        if order.order_status != PENDING:
            return self._flag(order, reference, f"payment {reference} captured for a {order.order_status} order")

        try:
            fulfillment = self.fulfillment.fulfill(order.id)
            if isinstance(fulfillment, InsufficientStock):
                self.orders.rollback()
                return self._flag(
                    order,
                    reference,
                    f"payment {reference} captured but stock is insufficient",
                    fulfillment.per_line_shortfalls,
                )

            result = self.ledger.stage_payment(
                order,
                verification.amount,
                verification.currency,
                reference,
                payment_channel=verification.channel,
                authorization_code=verification.authorization_code,
            )
            if isinstance(result, AlreadyProcessed):
                self.orders.rollback()
                return result

            self.carts.empty(Customer(order.customer_id))
            self.orders.commit()
        except IntegrityError:
            self.orders.rollback()
            logger.warning(f"Concurrent settlement for order {order.id}, reference {reference}")
            return AlreadyProcessed(order_id=order.id, transaction_ref=reference)
        except OrderStateConflict as e:
            self.orders.rollback()
            return self._flag(order, reference, f"payment {reference} captured but {e}")
        except (SQLAlchemyError, ValidationError):
            self.orders.rollback()
            raise

        logger.info(
            f"Payment completed for order {order.id}: invoice {result.invoice_no}, "
            f"amount {result.amount} {result.currency}, payment {result.pay_id}, reference {reference}"
        )
        self._notify(order.customer_id, result)
        return result

    def _flag(self, order: OrderModel, reference: str, reason: str, shortfalls=()) -> ReconciliationRequired:
        note = f"{RECONCILE_PREFIX} {reason}"
        existing = order.tracking_notes or ""
        notes = existing if note in existing else "\n".join(filter(None, [existing, note]))
        try:
            self.orders.flag_reconciliation(order.id, notes)
            self.orders.commit()
        except SQLAlchemyError:
            self.orders.rollback()
            raise

        logger.critical(f"ConsistencyFault on order {order.id}: {reason}")
        return ReconciliationRequired(
            order_id=order.id,
            transaction_ref=reference,
            reason=reason,
            per_line_shortfalls=list(shortfalls),
        )

    @staticmethod
    def _notify(customer_id: int, result: PaymentRecorded) -> None:
        try:
            NotificationService.send_order_confirmation(customer_id, result.order_id, result.invoice_no)
        except Exception as e:
            # the payment is committed; a broker outage only loses the notification
            logger.warning(f"Failed to enqueue confirmation for order {result.order_id}: {e}")
