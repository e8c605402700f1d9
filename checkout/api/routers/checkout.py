# checkout/api/routers/checkout.py
from fastapi import APIRouter, Depends, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from checkout.api.deps import get_owner
from checkout.data.database import get_db
from checkout.domain.errors import ValidationError
from checkout.domain.owners import CartOwner
from checkout.domain.results import OrderPlaced
from checkout.services.checkout_service import CheckoutService

router = APIRouter(prefix="/checkout", tags=["checkout"])


@router.post("/", response_model=OrderPlaced, status_code=201)
def checkout(owner: CartOwner = Depends(get_owner), db: Session = Depends(get_db)):
    """
    Revalidates the cart and creates a pending order. Rejections (empty
    cart, unavailable product, price drift, stock) come back as 409 with
    the structured reason.
    """
    svc = CheckoutService(db)
    try:
        result = svc.checkout(owner)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not isinstance(result, OrderPlaced):
        return JSONResponse(status_code=409, content=jsonable_encoder(result))
    return result


@router.get("/preview")
def preview(owner: CartOwner = Depends(get_owner), db: Session = Depends(get_db)):
    """Same revalidation as checkout without placing the order."""
    try:
        return CheckoutService(db).validate(owner)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
