# checkout/services/cart_service.py
from decimal import Decimal
from typing import Dict, Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from checkout.domain.errors import NotFoundError, ValidationError
from checkout.domain.owners import CartOwner, Customer, Guest, describe, owner_key
from checkout.repos.cart_repo import CartRepo
from checkout.repos.product_repo import ProductRepo
from checkout.utils.money import round_money
from checkout.utils.logging import get_logger

logger = get_logger(__name__)


class CartService:
    """
    Use cases of the cart: commands (add, set quantity, remove, empty,
    merge) change state and commit; the query (get_cart) only reads.
    """

    def __init__(self, db: Session):
        self.repo = CartRepo(db)
        self.products = ProductRepo(db)

    # query
    def get_cart(self, owner: CartOwner) -> Dict[str, Any]:
        lines = self.repo.list_lines(owner)
        products = self.products.get_products(line.product_id for line in lines)

        items = []
        for line in lines:
            product = products.get(line.product_id)
            current_price = product.price if product else None
            price = current_price if current_price is not None else line.unit_price
            items.append(
                {
                    "product_id": line.product_id,
                    "title": product.title if product else None,
                    "quantity": line.qty,
                    "unit_price": line.unit_price,
                    "current_price": current_price,
                    "stock": product.stock if product else None,
                    "line_total": round_money(price * line.qty),
                    "added_at": line.added_at,
                }
            )

        owner_type, owner_id = owner_key(owner)
        return {
            "owner_type": owner_type,
            "owner_id": owner_id,
            "items": items,
            "total_items": len(items),
            "total_quantity": sum(i["quantity"] for i in items),
            "total_amount": round_money(sum((i["line_total"] for i in items), Decimal("0.00"))),
        }

    def list_lines(self, owner: CartOwner):
        return self.repo.list_lines(owner)

    # commands
    def add_line(self, owner: CartOwner, product_id: int, qty: int) -> Dict[str, Any]:
        if qty <= 0:
            raise ValidationError("Quantity must be greater than 0")

        product = self.products.get_product(product_id)
        if product is None or not product.is_active:
            raise NotFoundError(f"Product {product_id} is not available")

        try:
            # summed with an existing line; the line's price snapshot is refreshed
            self.repo.upsert_add(owner, product_id, qty, product.price)
            self.repo.commit()
        except SQLAlchemyError:
            self.repo.rollback()
            raise

        logger.info(f"Added {qty} x product {product_id} to cart of {describe(owner)}")
        return self.get_cart(owner)

    def set_qty(self, owner: CartOwner, product_id: int, qty: int) -> Dict[str, Any]:
        if qty <= 0:
            return self.remove_line(owner, product_id)

        try:
            rowcount = self.repo.set_qty(owner, product_id, qty)
            if rowcount == 0:
                self.repo.rollback()
                raise NotFoundError(f"Product {product_id} is not in the cart")
            self.repo.commit()
        except SQLAlchemyError:
            self.repo.rollback()
            raise

        logger.info(f"Set quantity of product {product_id} to {qty} in cart of {describe(owner)}")
        return self.get_cart(owner)

    def remove_line(self, owner: CartOwner, product_id: int) -> Dict[str, Any]:
        try:
            rowcount = self.repo.delete_line(owner, product_id)
            self.repo.commit()
        except SQLAlchemyError:
            self.repo.rollback()
            raise

        if rowcount:
            logger.info(f"Removed product {product_id} from cart of {describe(owner)}")
        return self.get_cart(owner)

    def empty_cart(self, owner: CartOwner) -> int:
        try:
            removed = self.repo.empty(owner)
            self.repo.commit()
        except SQLAlchemyError:
            self.repo.rollback()
            raise

        logger.info(f"Emptied cart of {describe(owner)}: {removed} line(s)")
        return removed

    def merge_guest_into_customer(self, guest: Guest, customer: Customer) -> int:
        """
        Move every guest line to the customer.

        Each line is its own transaction: delete the guest row, and only if
        that delete hit a row, upsert-add its quantity onto the customer's
        line. A crash mid-merge leaves the remaining guest lines in place
        and a re-run picks them up without doubling anything.
        """
        merged = 0
        for line in self.repo.list_lines(guest):
            try:
                if self.repo.delete_line_by_id(line.id) == 0:
                    # another login already moved this line
                    self.repo.rollback()
                    continue
                self.repo.upsert_add(customer, line.product_id, line.qty, line.unit_price, refresh_price=False)
                self.repo.commit()
                merged += 1
            except SQLAlchemyError:
                self.repo.rollback()
                raise

        if merged:
            logger.info(f"Merged {merged} line(s) from guest cart into customer {customer.customer_id}")
        return merged

    def merge_on_login(self, session_id: str, customer_id: int) -> int:
        """Login hook: best effort, a failed merge never fails the login."""
        try:
            return self.merge_guest_into_customer(Guest(session_id), Customer(customer_id))
        except Exception as e:
            logger.error(f"Cart merge failed for customer {customer_id}: {e}")
            return 0
