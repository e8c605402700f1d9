# checkout/repos/order_repo.py
from datetime import datetime, timezone
from typing import Iterable, List

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from checkout.data.models.order import OrderModel, OrderLineModel
from checkout.data.models.product import ProductModel


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def create_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def add_lines(self, lines: Iterable[OrderLineModel]) -> List[OrderLineModel]:
        lines = list(lines)
        self.db.add_all(lines)
        self.db.flush()
        return lines

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.get(OrderModel, order_id, populate_existing=True)

    def get_lines(self, order_id: int) -> List[OrderLineModel]:
        return list(
            self.db.execute(
                select(OrderLineModel).where(OrderLineModel.order_id == order_id).order_by(OrderLineModel.id)
            ).scalars()
        )

    def get_lines_with_stock(self, order_id: int):
        """Order lines joined with the product's current stock and title."""
        return self.db.execute(
            select(
                OrderLineModel.product_id,
                OrderLineModel.qty,
                OrderLineModel.price,
                ProductModel.title,
                ProductModel.qty.label("stock"),
            )
            .join(ProductModel, ProductModel.id == OrderLineModel.product_id)
            .where(OrderLineModel.order_id == order_id)
            .order_by(OrderLineModel.id)
        ).all()

    def confirm_order(self, order_id: int, invoice_no: str) -> int:
        # only a pending order can be confirmed; 0 rows means someone got there first
        result = self.db.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.order_status == "pending")
            .values(
                order_status="confirmed",
                invoice_no=invoice_no,
                needs_reconciliation=False,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def update_status(self, order_id: int, status: str, notes: str | None, expected_status: str | None = None) -> int:
        conditions = [OrderModel.id == order_id]
        if expected_status is not None:
            conditions.append(OrderModel.order_status == expected_status)
        result = self.db.execute(
            update(OrderModel)
            .where(*conditions)
            .values(order_status=status, tracking_notes=notes, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def flag_reconciliation(self, order_id: int, note: str) -> int:
        result = self.db.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id)
            .values(needs_reconciliation=True, tracking_notes=note, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def clear_reconciliation(self, order_id: int, notes: str | None) -> int:
        result = self.db.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.needs_reconciliation.is_(True))
            .values(needs_reconciliation=False, tracking_notes=notes, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def list_by_customer(self, customer_id: int, limit: int = 50) -> List[OrderModel]:
        return list(
            self.db.execute(
                select(OrderModel)
                .where(OrderModel.customer_id == customer_id)
                .order_by(OrderModel.order_date.desc(), OrderModel.id.desc())
                .limit(limit)
            ).scalars()
        )

    def list_all(self, limit: int = 100) -> List[OrderModel]:
        return list(
            self.db.execute(
                select(OrderModel).order_by(OrderModel.order_date.desc(), OrderModel.id.desc()).limit(limit)
            ).scalars()
        )

    def list_flagged(self) -> List[OrderModel]:
        return list(
            self.db.execute(
                select(OrderModel).where(OrderModel.needs_reconciliation.is_(True)).order_by(OrderModel.id)
            ).scalars()
        )

    def status_totals(self):
        return self.db.execute(
            select(
                OrderModel.order_status,
                func.count(OrderModel.id).label("count"),
                func.coalesce(func.sum(OrderModel.order_total), 0).label("total_value"),
            ).group_by(OrderModel.order_status)
        ).all()

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
