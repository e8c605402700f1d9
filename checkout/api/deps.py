# checkout/api/deps.py
from fastapi import HTTPException, Query, Request

from checkout.domain.owners import CartOwner, Customer, Guest
from checkout.services.payment_gateway import PaymentGateway


def get_owner(
    session_id: str | None = Query(None, min_length=1, max_length=64),
    customer_id: int | None = Query(None, gt=0),
) -> CartOwner:
    """Cart owner from the request; exactly one of session_id / customer_id."""
    if (session_id is None) == (customer_id is None):
        raise HTTPException(status_code=400, detail="Provide exactly one of session_id or customer_id")
    if customer_id is not None:
        return Customer(customer_id)
    return Guest(session_id)


def get_gateway(request: Request) -> PaymentGateway:
    return request.app.state.gateway
