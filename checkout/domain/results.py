# checkout/domain/results.py
"""
Structured outcomes of checkout, payment and fulfillment.

Domain rejections are returned, not raised, so callers can render exactly
which lines need fixing. Each model carries a ``kind`` tag.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Union

from pydantic import BaseModel


class LineShortfall(BaseModel):
    product_id: int
    requested: int
    available: int


class LinePriceChange(BaseModel):
    product_id: int
    old_price: Decimal
    new_price: Decimal


class EmptyCart(BaseModel):
    kind: Literal["empty_cart"] = "empty_cart"


class ProductUnavailable(BaseModel):
    kind: Literal["product_unavailable"] = "product_unavailable"
    product_id: int


class PriceDriftTooLarge(BaseModel):
    kind: Literal["price_drift_too_large"] = "price_drift_too_large"
    old_total: Decimal
    new_total: Decimal
    per_line_changes: List[LinePriceChange]


class InsufficientStock(BaseModel):
    kind: Literal["insufficient_stock"] = "insufficient_stock"
    per_line_shortfalls: List[LineShortfall]


CheckoutRejection = Union[EmptyCart, ProductUnavailable, PriceDriftTooLarge, InsufficientStock]


class SnapshotLine(BaseModel):
    product_id: int
    title: str
    quantity: int
    snapshot_price: Decimal
    current_price: Decimal
    current_stock: int


class CheckoutSnapshot(BaseModel):
    """Revalidated view of a cart; built per attempt and never persisted."""

    lines: List[SnapshotLine]
    snapshot_total: Decimal
    total: Decimal
    price_drift_pct: Decimal


class PlacedLine(BaseModel):
    product_id: int
    qty: int
    price: Decimal


class OrderPlaced(BaseModel):
    kind: Literal["order_placed"] = "order_placed"
    order_id: int
    order_reference: str
    order_total: Decimal
    order_status: str
    order_date: datetime
    lines: List[PlacedLine]
    price_drift_pct: Decimal


class PaymentRecorded(BaseModel):
    kind: Literal["payment_recorded"] = "payment_recorded"
    order_id: int
    order_reference: str
    pay_id: int
    invoice_no: str
    amount: Decimal
    currency: str
    transaction_ref: str


class AlreadyProcessed(BaseModel):
    """Idempotency hit; success-equivalent for the caller."""

    kind: Literal["already_processed"] = "already_processed"
    order_id: int
    transaction_ref: str


class StockAdjustment(BaseModel):
    product_id: int
    qty: int


class Fulfilled(BaseModel):
    kind: Literal["fulfilled"] = "fulfilled"
    order_id: int
    lines: List[StockAdjustment]


class ReconciliationRequired(BaseModel):
    """Payment was captured by the provider but the order could not be settled."""

    kind: Literal["reconciliation_required"] = "reconciliation_required"
    order_id: int
    transaction_ref: str
    reason: str
    per_line_shortfalls: List[LineShortfall] = []


class StatusUpdated(BaseModel):
    kind: Literal["status_updated"] = "status_updated"
    order_id: int
    previous_status: str
    order_status: str
    tracking_notes: str | None = None
    stock_restored: bool = False
    stock_reserved: bool = False
    updated_at: datetime
