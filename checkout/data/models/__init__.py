# import all models so SQLAlchemy registers them in Base.metadata

from checkout.data.models.customer import CustomerModel
from checkout.data.models.product import ProductModel
from checkout.data.models.cart_line import CartLineModel
from checkout.data.models.order import OrderModel, OrderLineModel
from checkout.data.models.payment import PaymentModel

__all__ = [
    "CustomerModel",
    "ProductModel",
    "CartLineModel",
    "OrderModel",
    "OrderLineModel",
    "PaymentModel",
]
