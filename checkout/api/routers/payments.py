# checkout/api/routers/payments.py
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from checkout.api.deps import get_gateway
from checkout.data.database import get_db
from checkout.domain.errors import ExternalGatewayError, NotFoundError, OrderStateConflict, ValidationError
from checkout.domain.results import ReconciliationRequired
from checkout.domain.schemas import PaymentInitIn, PaymentInitOut, PaymentVerifyIn
from checkout.services.payment_gateway import PaymentGateway
from checkout.services.payment_service import PaymentService

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/initialize", response_model=PaymentInitOut)
def initialize_payment(
    payload: PaymentInitIn,
    customer_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
):
    svc = PaymentService(db, gateway)
    try:
        return svc.initialize(customer_id, payload.order_id)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except OrderStateConflict as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ExternalGatewayError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.post("/verify")
def verify_payment(
    payload: PaymentVerifyIn,
    customer_id: int | None = Query(None, gt=0),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
):
    """
    Verifies the transaction with the provider and settles the order.
    Safe to call repeatedly for the same reference: repeats answer
    ``already_processed``.
    """
    svc = PaymentService(db, gateway)
    try:
        result = svc.verify_and_settle(payload.reference, customer_id)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ExternalGatewayError as e:
        raise HTTPException(status_code=502, detail=str(e))

    if isinstance(result, ReconciliationRequired):
        return JSONResponse(status_code=409, content=jsonable_encoder(result))
    return result
