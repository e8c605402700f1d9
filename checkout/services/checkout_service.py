# checkout/services/checkout_service.py
from decimal import Decimal

from sqlalchemy.orm import Session

from checkout.domain.errors import GuestCheckoutError
from checkout.domain.owners import CartOwner, Customer
from checkout.domain.results import (
    CheckoutRejection,
    CheckoutSnapshot,
    EmptyCart,
    InsufficientStock,
    LinePriceChange,
    LineShortfall,
    OrderPlaced,
    PlacedLine,
    PriceDriftTooLarge,
    ProductUnavailable,
    SnapshotLine,
)
from checkout.repos.cart_repo import CartRepo
from checkout.repos.product_repo import ProductRepo
from checkout.services.order_ledger import OrderLedger
from checkout.utils.money import round_money
from checkout.utils.settings import PRICE_DRIFT_THRESHOLD
from checkout.utils.logging import get_logger

logger = get_logger(__name__)


def drift_ratio(old_total: Decimal, new_total: Decimal) -> Decimal:
    if old_total == 0:
        return Decimal("0") if new_total == 0 else Decimal("Infinity")
    return abs(new_total - old_total) / old_total


class CheckoutService:
    """
    Revalidates a customer's cart against live prices and stock, then
    places the order.

    Stock is checked, not reserved: the reservation happens when the
    payment is settled.
    """

    def __init__(self, db: Session, drift_threshold: Decimal = PRICE_DRIFT_THRESHOLD):
        self.carts = CartRepo(db)
        self.products = ProductRepo(db)
        self.ledger = OrderLedger(db)
        self.drift_threshold = drift_threshold

    @staticmethod
    def _require_customer(owner: CartOwner) -> int:
        match owner:
            case Customer(customer_id=customer_id):
                return customer_id
        raise GuestCheckoutError()

    def validate(self, owner: CartOwner) -> CheckoutSnapshot | CheckoutRejection:
        self._require_customer(owner)

        lines = self.carts.list_lines(owner)
        if not lines:
            return EmptyCart()

        # never trust the cart's cached price
        products = self.products.get_products(line.product_id for line in lines)

        snapshot_lines = []
        for line in lines:
            product = products.get(line.product_id)
            if product is None or not product.is_active:
                return ProductUnavailable(product_id=line.product_id)
            snapshot_lines.append(
                SnapshotLine(
                    product_id=line.product_id,
                    title=product.title,
                    quantity=line.qty,
                    snapshot_price=round_money(line.unit_price),
                    current_price=round_money(product.price),
                    current_stock=product.stock,
                )
            )

        old_total = round_money(sum((l.snapshot_price * l.quantity for l in snapshot_lines), Decimal("0.00")))
        new_total = round_money(sum((l.current_price * l.quantity for l in snapshot_lines), Decimal("0.00")))

        drift = drift_ratio(old_total, new_total)
        if drift > self.drift_threshold:
            return PriceDriftTooLarge(
                old_total=old_total,
                new_total=new_total,
                per_line_changes=[
                    LinePriceChange(product_id=l.product_id, old_price=l.snapshot_price, new_price=l.current_price)
                    for l in snapshot_lines
                    if l.snapshot_price != l.current_price
                ],
            )

        shortfalls = [
            LineShortfall(product_id=l.product_id, requested=l.quantity, available=l.current_stock)
            for l in snapshot_lines
            if l.quantity > l.current_stock
        ]
        if shortfalls:
            return InsufficientStock(per_line_shortfalls=shortfalls)

        return CheckoutSnapshot(
            lines=snapshot_lines,
            snapshot_total=old_total,
            total=new_total,
            price_drift_pct=round_money(drift * 100),
        )

    def checkout(self, owner: CartOwner) -> OrderPlaced | CheckoutRejection:
        customer_id = self._require_customer(owner)

        result = self.validate(owner)
        if not isinstance(result, CheckoutSnapshot):
            logger.info(f"Checkout rejected for customer {customer_id}: {result.kind}")
            return result

        # under the drift threshold the order is priced at the current prices
        placed_lines = [PlacedLine(product_id=l.product_id, qty=l.quantity, price=l.current_price) for l in result.lines]
        order = self.ledger.place_order(customer_id, placed_lines)

        return OrderPlaced(
            order_id=order.id,
            order_reference=order.order_reference,
            order_total=order.order_total,
            order_status=order.order_status,
            order_date=order.order_date,
            lines=placed_lines,
            price_drift_pct=result.price_drift_pct,
        )
