# checkout/services/order_ledger.py
import secrets
import string
import time
from decimal import Decimal
from typing import Iterable, List

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from checkout.data.models.order import OrderModel, OrderLineModel
from checkout.data.models.payment import PaymentModel
from checkout.domain.errors import NotFoundError, OrderStateConflict, PaymentAmountMismatch, ValidationError
from checkout.domain.results import AlreadyProcessed, PaymentRecorded, PlacedLine
from checkout.repos.order_repo import OrderRepo
from checkout.repos.payment_repo import PaymentRepo
from checkout.services.order_status import CONFIRMED, PENDING
from checkout.utils.money import round_money
from checkout.utils.settings import PAYMENT_AMOUNT_EPSILON
from checkout.utils.logging import get_logger

logger = get_logger(__name__)

_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


def _stamp(prefix: str) -> str:
    # millisecond clock + random suffix; uniqueness is enforced by the column
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(6))
    return f"{prefix}-{time.time_ns() // 1_000_000}-{suffix}"


def generate_order_reference() -> str:
    return _stamp("ORD")


def generate_invoice_number() -> str:
    return _stamp("INV")


def check_amount(paid: Decimal, expected: Decimal) -> None:
    if abs(round_money(paid) - round_money(expected)) > PAYMENT_AMOUNT_EPSILON:
        raise PaymentAmountMismatch(paid=round_money(paid), expected=round_money(expected))


class OrderLedger:
    """
    Order headers, order lines and payments.

    ``place_order`` and ``record_payment`` own their transaction;
    ``create_order``, ``add_order_lines`` and ``stage_payment`` write
    inside the caller's transaction so they can be combined with stock
    movements in one commit.
    """

    def __init__(self, db: Session):
        self.orders = OrderRepo(db)
        self.payments = PaymentRepo(db)

    def create_order(self, customer_id: int, reference: str, total: Decimal) -> OrderModel:
        order = OrderModel(
            customer_id=customer_id,
            order_reference=reference,
            order_total=round_money(total),
            order_status=PENDING,
        )
        return self.orders.create_order(order)

    def add_order_lines(self, order_id: int, validated_lines: Iterable[PlacedLine]) -> List[OrderLineModel]:
        return self.orders.add_lines(
            OrderLineModel(order_id=order_id, product_id=line.product_id, qty=line.qty, price=round_money(line.price))
            for line in validated_lines
        )

    def place_order(self, customer_id: int, validated_lines: List[PlacedLine]) -> OrderModel:
        """
        Header and lines in one commit. The total is derived from the lines
        here and stored; it is never re-derived afterwards.
        """
        if not validated_lines:
            raise ValidationError("Cannot place an order without lines")

        total = round_money(sum((round_money(l.price) * l.qty for l in validated_lines), Decimal("0.00")))
        try:
            order = self.create_order(customer_id, generate_order_reference(), total)
            self.add_order_lines(order.id, validated_lines)
            self.orders.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to place order for customer {customer_id}: {e}")
            self.orders.rollback()
            raise

        logger.info(
            f"Order {order.id} ({order.order_reference}) placed for customer {customer_id}, "
            f"total {order.order_total}, {len(validated_lines)} line(s)"
        )
        return order

    def stage_payment(
        self,
        order: OrderModel,
        amount: Decimal,
        currency: str,
        transaction_ref: str,
        payment_method: str = "paystack",
        payment_channel: str | None = None,
        authorization_code: str | None = None,
    ) -> PaymentRecorded | AlreadyProcessed:
        existing = self.payments.find_existing(order.id, transaction_ref)
        if existing is not None:
            logger.warning(
                f"Payment already processed for order {order.id}, reference {transaction_ref} "
                f"(payment {existing.id})"
            )
            return AlreadyProcessed(order_id=order.id, transaction_ref=transaction_ref)

        if order.order_status != PENDING:
            raise OrderStateConflict(order.id, order.order_status)

        check_amount(amount, order.order_total)

        payment = self.payments.add_payment(
            PaymentModel(
                order_id=order.id,
                customer_id=order.customer_id,
                amt=round_money(amount),
                currency=currency,
                transaction_ref=transaction_ref,
                payment_status="completed",
                payment_method=payment_method,
                payment_channel=payment_channel,
                authorization_code=authorization_code,
            )
        )

        invoice_no = generate_invoice_number()
        if self.orders.confirm_order(order.id, invoice_no) == 0:
            raise OrderStateConflict(order.id, self.orders.get_order(order.id).order_status)

        return PaymentRecorded(
            order_id=order.id,
            order_reference=order.order_reference,
            pay_id=payment.id,
            invoice_no=invoice_no,
            amount=payment.amt,
            currency=currency,
            transaction_ref=transaction_ref,
        )

    def record_payment(
        self,
        customer_id: int,
        order_id: int,
        amount: Decimal,
        currency: str,
        transaction_ref: str,
        payment_method: str = "paystack",
        payment_channel: str | None = None,
        authorization_code: str | None = None,
    ) -> PaymentRecorded | AlreadyProcessed:
        """
        Idempotent payment recording: payment row and order confirmation
        commit together or not at all. A repeat for the same order or
        transaction reference returns AlreadyProcessed without writing.
        """
        order = self.orders.get_order(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} does not exist")
        if order.customer_id != customer_id:
            raise PermissionError("Order belongs to another customer")

        try:
            result = self.stage_payment(
                order,
                amount,
                currency,
                transaction_ref,
                payment_method=payment_method,
                payment_channel=payment_channel,
                authorization_code=authorization_code,
            )
            if isinstance(result, AlreadyProcessed):
                self.orders.rollback()
                return result
            self.orders.commit()
        except IntegrityError:
            # lost the race against a concurrent recording of the same payment
            self.orders.rollback()
            logger.warning(f"Concurrent payment for order {order_id}, reference {transaction_ref}")
            return AlreadyProcessed(order_id=order_id, transaction_ref=transaction_ref)
        except (SQLAlchemyError, OrderStateConflict, PaymentAmountMismatch):
            self.orders.rollback()
            raise

        logger.info(
            f"Payment {result.pay_id} recorded for order {order_id}: {result.amount} {currency}, "
            f"invoice {result.invoice_no}, order {CONFIRMED}"
        )
        return result
