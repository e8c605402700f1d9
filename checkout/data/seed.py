# checkout/data/seed.py
from decimal import Decimal

from checkout.data.database import Database
from checkout.data.models import CustomerModel, ProductModel

PRODUCTS = [
    {"id": 1, "title": "Keyboard", "price": Decimal("199.99"), "qty": 25},
    {"id": 2, "title": "Mouse", "price": Decimal("49.50"), "qty": 100},
    {"id": 3, "title": "Monitor", "price": Decimal("899.00"), "qty": 5},
]


def seed(database: Database | None = None):
    database = (database or Database()).open()
    db = database.session()
    try:
        # not forcing: only seed if empty
        if db.query(ProductModel).first():
            return
        db.add_all(ProductModel(**p) for p in PRODUCTS)
        db.add(CustomerModel(id=1, name="Demo Customer", email="demo@example.com"))
        db.commit()
    finally:
        db.close()


if __name__ == "__main__":
    seed()
