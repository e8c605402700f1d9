# checkout/api/routers/admin.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from checkout.data.database import get_db
from checkout.domain.errors import NotFoundError, OrderStateConflict, ValidationError
from checkout.domain.results import InsufficientStock, StatusUpdated
from checkout.domain.schemas import OrderDetailOut, OrderOut, OrderStatsOut, ReconciliationResolveIn, StatusUpdateIn
from checkout.services.order_service import OrderService

# authorization of admins happens in front of this service
router = APIRouter(prefix="/admin/orders", tags=["admin"])


def get_service(db: Session):
    return OrderService(db)


@router.get("/", response_model=List[OrderOut])
def list_orders(limit: int = Query(100, gt=0, le=500), db: Session = Depends(get_db)):
    return get_service(db).list_orders(limit)


@router.get("/stats", response_model=OrderStatsOut)
def order_stats(db: Session = Depends(get_db)):
    return get_service(db).get_statistics()


@router.get("/reconciliation", response_model=List[OrderOut])
def reconciliation_queue(db: Session = Depends(get_db)):
    return get_service(db).reconciliation_queue()


@router.get("/{order_id}", response_model=OrderDetailOut)
def get_order(order_id: int, db: Session = Depends(get_db)):
    try:
        return get_service(db).get_order(order_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.patch("/{order_id}/status", response_model=StatusUpdated)
def update_status(order_id: int, payload: StatusUpdateIn, db: Session = Depends(get_db)):
    svc = get_service(db)
    try:
        result = svc.update_status(order_id, payload.status, payload.notes)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except OrderStateConflict as e:
        raise HTTPException(status_code=409, detail=str(e))

    if isinstance(result, InsufficientStock):
        return JSONResponse(status_code=409, content=jsonable_encoder(result))
    return result


@router.post("/{order_id}/reconciliation/resolve", response_model=OrderOut)
def resolve_reconciliation(order_id: int, payload: ReconciliationResolveIn, db: Session = Depends(get_db)):
    try:
        return get_service(db).resolve_reconciliation(order_id, payload.notes)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except OrderStateConflict as e:
        raise HTTPException(status_code=409, detail=str(e))
