# checkout/api/routers/orders.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from checkout.data.database import get_db
from checkout.domain.errors import NotFoundError
from checkout.domain.schemas import OrderDetailOut, OrderOut
from checkout.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


def get_service(db: Session):
    return OrderService(db)


@router.get("/", response_model=List[OrderOut])
def list_orders(
    customer_id: int = Query(..., gt=0),
    limit: int = Query(50, gt=0, le=200),
    db: Session = Depends(get_db),
):
    """
    Customer order history, newest first.
    """
    return get_service(db).list_customer_orders(customer_id, limit)


@router.get("/{order_id}", response_model=OrderDetailOut)
def get_order(
    order_id: int,
    customer_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
):
    """
    Order details with lines, payment and status timeline.
    """
    svc = get_service(db)
    try:
        return svc.get_order(order_id, customer_id)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
