# storefront/services/notification_service.py
from storefront.celery_worker import celery_app
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Queues buyer and admin notifications on Celery.
    Callers treat these as best effort: a broker outage must not fail a checkout.
    """

    @staticmethod
    def send_order_confirmation(user_id: str, order_id: str, city: str):
        send_order_confirmation_task.delay(user_id, order_id, city)

    @staticmethod
    def send_low_stock_alert(product_id: str, remaining: int):
        send_low_stock_alert_task.delay(product_id, remaining)


@celery_app.task(name="storefront.services.notification_service.send_order_confirmation_task")
def send_order_confirmation_task(user_id: str, order_id: str, city: str):
    """
    A real deployment would hand this to an email/SMS/push provider.
    """
    logger.info(f"[NOTIFICATION] User {user_id}: order {order_id} placed, shipping to {city}")
    return {"user_id": user_id, "order_id": order_id, "status": "sent"}


@celery_app.task(name="storefront.services.notification_service.send_low_stock_alert_task")
def send_low_stock_alert_task(product_id: str, remaining: int):
    logger.info(f"[NOTIFICATION] Low stock alert: {product_id} is running low ({remaining} left)")
    return {"product_id": product_id, "remaining": remaining, "status": "sent"}
