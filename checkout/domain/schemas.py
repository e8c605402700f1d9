# checkout/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict
from typing import List
from decimal import Decimal
from datetime import datetime


class Product(BaseModel):
    """Typed projection of a product row: what checkout and fulfillment need."""

    id: int
    title: str
    price: Decimal
    stock: int
    is_active: bool = True


class ItemIn(BaseModel):
    """Add a product to the cart."""

    product_id: int = Field(..., gt=0)
    quantity: int = Field(1, gt=0, description="Added to the existing quantity")


class QuantityIn(BaseModel):
    """Overwrite a line's quantity; 0 or less removes the line."""

    quantity: int


class MergeIn(BaseModel):
    session_id: str = Field(..., min_length=1, max_length=64)
    customer_id: int = Field(..., gt=0)


class SessionOut(BaseModel):
    session_id: str


class CartLineOut(BaseModel):
    product_id: int
    title: str | None
    quantity: int
    unit_price: Decimal
    current_price: Decimal | None
    stock: int | None
    line_total: Decimal
    added_at: datetime | None = None


class CartOut(BaseModel):
    owner_type: str
    owner_id: str
    items: List[CartLineOut]
    total_items: int
    total_quantity: int
    total_amount: Decimal


class MergeOut(BaseModel):
    merged_lines: int
    cart: CartOut | None = None


class OrderLineOut(BaseModel):
    product_id: int
    title: str | None = None
    qty: int
    price: Decimal
    line_total: Decimal


class PaymentOut(BaseModel):
    pay_id: int
    amt: Decimal
    currency: str
    transaction_ref: str
    payment_status: str
    payment_method: str
    payment_channel: str | None = None
    created_at: datetime | None = None


class TimelineStep(BaseModel):
    status: str
    label: str
    icon: str
    is_completed: bool
    is_current: bool
    timestamp: datetime | None = None
    notes: str | None = None


class OrderOut(BaseModel):
    id: int
    customer_id: int
    order_reference: str
    order_total: Decimal
    order_status: str
    invoice_no: str | None = None
    tracking_notes: str | None = None
    needs_reconciliation: bool = False
    order_date: datetime
    updated_at: datetime
    payment_status: str | None = None

    model_config = ConfigDict(from_attributes=True)


class OrderDetailOut(OrderOut):
    lines: List[OrderLineOut]
    payment: PaymentOut | None = None
    timeline: List[TimelineStep]


class StatusUpdateIn(BaseModel):
    status: str = Field(..., min_length=1)
    notes: str | None = Field(None, max_length=2000)


class OrderStatsOut(BaseModel):
    stats: dict[str, int]
    values: dict[str, Decimal]


class PaymentInitIn(BaseModel):
    order_id: int = Field(..., gt=0)


class PaymentInitOut(BaseModel):
    order_id: int
    order_reference: str
    reference: str
    authorization_url: str
    access_code: str


class PaymentVerifyIn(BaseModel):
    reference: str = Field(..., min_length=1, max_length=100)


class ReconciliationResolveIn(BaseModel):
    notes: str | None = Field(None, max_length=2000)
