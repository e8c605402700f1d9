from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint

from checkout.data.database import Base


def _now():
    return datetime.now(timezone.utc)


class CartLineModel(Base):
    __tablename__ = "cart"

    id = Column(Integer, primary_key=True)
    owner_type = Column(String(16), nullable=False)  # guest | customer
    owner_id = Column(String(64), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)

    qty = Column(Integer, nullable=False)
    # price at the time the line was added, compared against the live price at checkout
    unit_price = Column(Numeric(12, 2), nullable=False)

    added_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    __table_args__ = (
        UniqueConstraint("owner_type", "owner_id", "product_id", name="u_cart_owner_product"),
        CheckConstraint("qty >= 1", name="ck_cart_qty_positive"),
    )
