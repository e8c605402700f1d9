# checkout/services/notification_service.py
from checkout.celery_worker import celery_app
from checkout.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Customer notifications, processed asynchronously by Celery.
    """

    @staticmethod
    def send_order_confirmation(customer_id: int, order_id: int, invoice_no: str):
        """
        Tells the customer the payment went through and the order is confirmed.
        """
        send_order_confirmation_task.delay(customer_id, order_id, invoice_no)


@celery_app.task(name="checkout.services.notification_service.send_order_confirmation_task")
def send_order_confirmation_task(customer_id: int, order_id: int, invoice_no: str):
    """
    Only logs for now; there is no outbound email/SMS channel.
    """
    logger.info(f"[NOTIFICATION] Customer {customer_id}: order {order_id} confirmed, invoice {invoice_no}")

    return {"customer_id": customer_id, "order_id": order_id, "invoice_no": invoice_no, "status": "sent"}
