# checkout/tasks/reconcile.py
from typing import List

from sqlalchemy.orm import Session

from checkout.celery_worker import celery_app
from checkout.data.database import Database
from checkout.repos.order_repo import OrderRepo
from checkout.utils.logging import get_logger

logger = get_logger(__name__)
database = Database()


def report_reconciliation_queue(db: Session) -> List[int]:
    """Log every order whose payment was captured but could not be settled."""
    orders = OrderRepo(db).list_flagged()

    for order in orders:
        logger.critical(
            f"Order {order.id} ({order.order_reference}) awaits manual reconciliation: "
            f"status={order.order_status}, total={order.order_total}, notes={order.tracking_notes!r}"
        )
    return [order.id for order in orders]


@celery_app.task(name="checkout.tasks.reconcile.report_reconciliation_queue_task")
def report_reconciliation_queue_task():
    logger.info("Reconciliation sweep started")

    db = database.open().session()
    try:
        flagged = report_reconciliation_queue(db)
        logger.info(f"Reconciliation sweep found {len(flagged)} order(s)")
        return flagged
    finally:
        db.close()
