# checkout/services/fulfillment.py
from collections import OrderedDict
from typing import List, Tuple

from sqlalchemy.orm import Session

from checkout.domain.errors import NotFoundError, ValidationError
from checkout.domain.results import Fulfilled, InsufficientStock, LineShortfall, StockAdjustment
from checkout.repos.order_repo import OrderRepo
from checkout.repos.product_repo import ProductRepo
from checkout.utils.logging import get_logger

logger = get_logger(__name__)


class FulfillmentEngine:
    """
    Turns a paid order's lines into stock movements.

    Works inside the caller's transaction and never commits: the payment
    settlement and the admin status update decide when to commit.
    """

    def __init__(self, db: Session):
        self.orders = OrderRepo(db)
        self.products = ProductRepo(db)

    def _order_lines(self, order_id: int) -> List[StockAdjustment]:
        if self.orders.get_order(order_id) is None:
            raise NotFoundError(f"Order {order_id} does not exist")

        per_product: "OrderedDict[int, int]" = OrderedDict()
        for line in self.orders.get_lines(order_id):
            per_product[line.product_id] = per_product.get(line.product_id, 0) + line.qty

        if not per_product:
            raise ValidationError(f"Order {order_id} has no lines")
        return [StockAdjustment(product_id=pid, qty=qty) for pid, qty in per_product.items()]

    def check_stock(self, order_id: int, lines: List[StockAdjustment] | None = None) -> List[LineShortfall]:
        lines = self._order_lines(order_id) if lines is None else lines
        products = self.products.get_products(line.product_id for line in lines)
        shortfalls = []
        for line in lines:
            product = products.get(line.product_id)
            available = product.stock if product else 0
            if line.qty > available:
                shortfalls.append(LineShortfall(product_id=line.product_id, requested=line.qty, available=available))
        return shortfalls

    def adjust_stock(
        self,
        order_id: int,
        sign: int,
        lines: List[StockAdjustment] | None = None,
    ) -> Tuple[List[StockAdjustment], StockAdjustment | None]:
        """
        Move stock for the order's lines: -1 takes, +1 puts back.

        Decrements are conditional (qty >= n); the first line whose
        decrement affects no rows stops the loop and is returned as the
        failed line together with the lines already applied.
        """
        if sign not in (1, -1):
            raise ValueError("sign must be +1 or -1")

        lines = self._order_lines(order_id) if lines is None else lines
        applied: List[StockAdjustment] = []

        for line in lines:
            if sign < 0:
                rowcount = self.products.decrement_stock(line.product_id, line.qty)
            else:
                rowcount = self.products.increment_stock(line.product_id, line.qty)

            if rowcount == 0:
                logger.warning(
                    f"Stock adjustment {sign:+d}x{line.qty} for product {line.product_id} "
                    f"(order {order_id}) affected no rows"
                )
                return applied, line
            applied.append(line)

        return applied, None

    def fulfill(self, order_id: int) -> Fulfilled | InsufficientStock:
        lines = self._order_lines(order_id)

        # authoritative check; the one at checkout was advisory
        shortfalls = self.check_stock(order_id, lines)
        if shortfalls:
            logger.info(f"Order {order_id} cannot be fulfilled: {len(shortfalls)} line(s) short")
            return InsufficientStock(per_line_shortfalls=shortfalls)

        applied, failed = self.adjust_stock(order_id, -1, lines)
        if failed is not None:
            # a concurrent purchase took the stock between the check and the write
            self.restore(order_id, applied)
            product = self.products.get_product(failed.product_id)
            available = product.stock if product else 0
            logger.warning(
                f"Order {order_id} lost a race for product {failed.product_id}; "
                f"restored {len(applied)} line(s)"
            )
            return InsufficientStock(
                per_line_shortfalls=[
                    LineShortfall(product_id=failed.product_id, requested=failed.qty, available=available)
                ]
            )

        logger.info(f"Order {order_id} fulfilled: {len(applied)} line(s) decremented")
        return Fulfilled(order_id=order_id, lines=applied)

    def restore(self, order_id: int, lines: List[StockAdjustment] | None = None) -> List[StockAdjustment]:
        """
        Put back stock for the given lines (default: every line of the order).

        Not idempotent: callers gate it on the order's status.
        """
        applied, failed = self.adjust_stock(order_id, 1, lines)
        if failed is not None:
            raise NotFoundError(f"Product {failed.product_id} vanished while restoring order {order_id}")
        if applied:
            logger.info(f"Restored stock for order {order_id}: {[(a.product_id, a.qty) for a in applied]}")
        return applied
