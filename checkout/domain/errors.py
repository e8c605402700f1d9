# checkout/domain/errors.py


class CheckoutError(Exception):
    """Base for errors raised by the checkout engine."""


class ValidationError(CheckoutError, ValueError):
    """Bad input shape; never retried automatically."""


class GuestCheckoutError(ValidationError):
    def __init__(self):
        super().__init__("Guests cannot check out, log in first")


class InvalidStatusError(ValidationError):
    pass


class PaymentNotSuccessful(ValidationError):
    pass


class PaymentAmountMismatch(ValidationError):
    def __init__(self, paid, expected):
        self.paid = paid
        self.expected = expected
        super().__init__(f"Payment amount mismatch: paid {paid}, expected {expected}")


class NotFoundError(CheckoutError, LookupError):
    pass


class ExternalGatewayError(CheckoutError):
    """Payment provider unreachable or answered with an error; the caller decides whether to retry."""


class OrderStateConflict(CheckoutError):
    """The order moved out of the state an operation requires (e.g. no longer pending)."""

    def __init__(self, order_id: int, status: str):
        self.order_id = order_id
        self.status = status
        super().__init__(f"Order {order_id} is {status}")
