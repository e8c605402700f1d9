# checkout/repos/product_repo.py
from typing import Dict, Iterable

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from checkout.data.models.product import ProductModel
from checkout.domain.schemas import Product


class ProductRepo:
    """
    Product read/write model used by checkout and fulfillment.

    Reads go through column selects so they always see the stored stock,
    never a stale identity-map copy. Stock only changes through the
    conditional decrement and the increment below.
    """

    def __init__(self, db: Session):
        self.db = db

    def _projection(self):
        return select(
            ProductModel.id,
            ProductModel.title,
            ProductModel.price,
            ProductModel.qty,
            ProductModel.is_active,
        )

    @staticmethod
    def _to_product(row) -> Product:
        return Product(id=row.id, title=row.title, price=row.price, stock=row.qty, is_active=row.is_active)

    def get_product(self, product_id: int) -> Product | None:
        row = self.db.execute(self._projection().where(ProductModel.id == product_id)).first()
        return self._to_product(row) if row else None

    def get_products(self, product_ids: Iterable[int]) -> Dict[int, Product]:
        ids = list(set(product_ids))
        if not ids:
            return {}
        rows = self.db.execute(self._projection().where(ProductModel.id.in_(ids))).all()
        return {row.id: self._to_product(row) for row in rows}

    def decrement_stock(self, product_id: int, n: int) -> int:
        # UPDATE products SET qty = qty - n WHERE id = X AND qty >= n
        result = self.db.execute(
            update(ProductModel)
            .where(ProductModel.id == product_id, ProductModel.qty >= n)
            .values(qty=ProductModel.qty - n)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def increment_stock(self, product_id: int, n: int) -> int:
        result = self.db.execute(
            update(ProductModel)
            .where(ProductModel.id == product_id)
            .values(qty=ProductModel.qty + n)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def set_price(self, product_id: int, price) -> int:
        result = self.db.execute(
            update(ProductModel)
            .where(ProductModel.id == product_id)
            .values(price=price)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
