# checkout/repos/payment_repo.py
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from checkout.data.models.payment import PaymentModel


class PaymentRepo:
    def __init__(self, db: Session):
        self.db = db

    def find_existing(self, order_id: int, transaction_ref: str) -> PaymentModel | None:
        return self.db.execute(
            select(PaymentModel)
            .where(or_(PaymentModel.order_id == order_id, PaymentModel.transaction_ref == transaction_ref))
            .limit(1)
        ).scalar_one_or_none()

    def get_by_order(self, order_id: int) -> PaymentModel | None:
        return self.db.execute(
            select(PaymentModel).where(PaymentModel.order_id == order_id)
        ).scalar_one_or_none()

    def add_payment(self, payment: PaymentModel) -> PaymentModel:
        # unique constraints on order_id / transaction_ref raise IntegrityError here
        self.db.add(payment)
        self.db.flush()
        return payment
