from sqlalchemy import Boolean, CheckConstraint, Column, Integer, Numeric, String

from checkout.data.database import Base


class ProductModel(Base):
    """Product read/write projection; ``qty`` is the stock counter."""

    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    qty = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (CheckConstraint("qty >= 0", name="ck_product_qty_non_negative"),)
