from checkout.repos.product_repo import ProductRepo
from checkout.services.cart_service import CartService
from checkout.services.checkout_service import CheckoutService

CUSTOMER_ID = 42
OTHER_CUSTOMER_ID = 7

WIDGET = 7  # stock 10, price 5.00
GADGET = 1  # stock 5, price 9.99
GIZMO = 2  # stock 3, price 20.00
TEN = 3  # stock 50, price 10.00
RETIRED = 4  # inactive


def stock(session, product_id):
    return ProductRepo(session).get_product(product_id).stock


def quantities(session, owner):
    return {line.product_id: line.qty for line in CartService(session).list_lines(owner)}


def place_order(session, owner, *lines):
    """Fill the owner's cart with (product_id, qty) lines and check out."""
    carts = CartService(session)
    for product_id, qty in lines:
        carts.add_line(owner, product_id, qty)
    return CheckoutService(session).checkout(owner)
