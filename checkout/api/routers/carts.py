# checkout/api/routers/carts.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from checkout.api.deps import get_owner
from checkout.data.database import get_db
from checkout.domain.errors import NotFoundError, ValidationError
from checkout.domain.owners import CartOwner, Customer, new_session_id
from checkout.domain.schemas import CartOut, ItemIn, MergeIn, MergeOut, QuantityIn, SessionOut
from checkout.services.cart_service import CartService

router = APIRouter(prefix="/carts", tags=["carts"])


def get_service(db: Session):
    return CartService(db)


@router.post("/sessions", response_model=SessionOut, status_code=201)
def create_session():
    return {"session_id": new_session_id()}


@router.get("/", response_model=CartOut)
def get_cart(owner: CartOwner = Depends(get_owner), db: Session = Depends(get_db)):
    return get_service(db).get_cart(owner)


@router.post("/items", response_model=CartOut)
def add_item(
    payload: ItemIn,
    owner: CartOwner = Depends(get_owner),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        return svc.add_line(owner, payload.product_id, payload.quantity)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.put("/items/{product_id}", response_model=CartOut)
def set_quantity(
    product_id: int,
    payload: QuantityIn,
    owner: CartOwner = Depends(get_owner),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        return svc.set_qty(owner, product_id, payload.quantity)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.delete("/items/{product_id}", response_model=CartOut)
def remove_item(
    product_id: int,
    owner: CartOwner = Depends(get_owner),
    db: Session = Depends(get_db),
):
    return get_service(db).remove_line(owner, product_id)


@router.delete("/", response_model=CartOut)
def empty_cart(owner: CartOwner = Depends(get_owner), db: Session = Depends(get_db)):
    svc = get_service(db)
    svc.empty_cart(owner)
    return svc.get_cart(owner)


@router.post("/merge", response_model=MergeOut)
def merge_cart(payload: MergeIn, db: Session = Depends(get_db)):
    """
    Called by the auth layer right after login. Never fails the login:
    a failed merge reports zero merged lines.
    """
    svc = get_service(db)
    merged = svc.merge_on_login(payload.session_id, payload.customer_id)
    return {"merged_lines": merged, "cart": svc.get_cart(Customer(payload.customer_id))}
