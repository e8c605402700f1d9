from sqlalchemy import Boolean, Column, Integer, ForeignKey, String, DateTime, Numeric, Text
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from checkout.data.database import Base


def _now():
    return datetime.now(timezone.utc)


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    order_reference = Column(String(40), nullable=False, unique=True)

    order_total = Column(Numeric(12, 2), nullable=False)
    order_status = Column(String(16), nullable=False, default="pending", index=True)
    invoice_no = Column(String(40), nullable=True, unique=True)
    tracking_notes = Column(Text, nullable=True)
    needs_reconciliation = Column(Boolean, nullable=False, default=False, index=True)

    order_date = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    lines = relationship("OrderLineModel", order_by="OrderLineModel.id", lazy="selectin")


class OrderLineModel(Base):
    """Line captured at order creation; never updated afterwards."""

    __tablename__ = "orderdetails"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    qty = Column(Integer, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
