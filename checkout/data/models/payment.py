from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String

from checkout.data.database import Base


class PaymentModel(Base):
    __tablename__ = "payment"

    id = Column(Integer, primary_key=True)
    # both unique: the storage-level race breaker for concurrent payment recording
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, unique=True)
    transaction_ref = Column(String(100), nullable=False, unique=True)

    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False)
    amt = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    payment_status = Column(String(16), nullable=False, default="completed")
    payment_method = Column(String(32), nullable=False, default="paystack")
    payment_channel = Column(String(32), nullable=True)
    authorization_code = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
