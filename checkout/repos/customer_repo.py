from sqlalchemy.orm import Session
from checkout.data.models.customer import CustomerModel

class CustomerRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_customer(self, customer_id: int) -> CustomerModel | None:
        return self.db.get(CustomerModel, customer_id)
