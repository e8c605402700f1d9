# checkout/repos/cart_repo.py
from datetime import datetime, timezone
from typing import List

from sqlalchemy import delete, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from checkout.data.models.cart_line import CartLineModel
from checkout.domain.owners import CartOwner, owner_key

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class CartRepo:
    """Cart lines keyed by (owner_type, owner_id, product_id). Never commits on its own."""

    def __init__(self, db: Session):
        self.db = db

    def _owner_filter(self, owner: CartOwner):
        owner_type, owner_id = owner_key(owner)
        return (CartLineModel.owner_type == owner_type, CartLineModel.owner_id == owner_id)

    def list_lines(self, owner: CartOwner) -> List[CartLineModel]:
        return list(
            self.db.execute(
                select(CartLineModel)
                .where(*self._owner_filter(owner))
                .order_by(CartLineModel.id)
                .execution_options(populate_existing=True)
            ).scalars()
        )

    def upsert_add(self, owner: CartOwner, product_id: int, qty: int, unit_price, refresh_price: bool = True) -> None:
        """
        Single INSERT .. ON CONFLICT DO UPDATE: a new line is inserted, an
        existing one gets ``qty`` added to it.
        """
        dialect = self.db.get_bind().dialect.name
        insert = _UPSERT_DIALECTS.get(dialect)
        if insert is None:
            raise NotImplementedError(f"Cart upsert is not supported on {dialect}")

        owner_type, owner_id = owner_key(owner)
        now = datetime.now(timezone.utc)
        stmt = insert(CartLineModel).values(
            owner_type=owner_type,
            owner_id=owner_id,
            product_id=product_id,
            qty=qty,
            unit_price=unit_price,
            added_at=now,
            updated_at=now,
        )
        set_ = {
            "qty": CartLineModel.qty + stmt.excluded.qty,
            "updated_at": stmt.excluded.updated_at,
        }
        if refresh_price:
            set_["unit_price"] = stmt.excluded.unit_price

        self.db.execute(
            stmt.on_conflict_do_update(
                index_elements=["owner_type", "owner_id", "product_id"],
                set_=set_,
            )
        )

    def set_qty(self, owner: CartOwner, product_id: int, qty: int) -> int:
        result = self.db.execute(
            update(CartLineModel)
            .where(*self._owner_filter(owner), CartLineModel.product_id == product_id)
            .values(qty=qty, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def delete_line(self, owner: CartOwner, product_id: int) -> int:
        result = self.db.execute(
            delete(CartLineModel)
            .where(*self._owner_filter(owner), CartLineModel.product_id == product_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def delete_line_by_id(self, line_id: int) -> int:
        result = self.db.execute(
            delete(CartLineModel)
            .where(CartLineModel.id == line_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def empty(self, owner: CartOwner) -> int:
        result = self.db.execute(
            delete(CartLineModel)
            .where(*self._owner_filter(owner))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
