# storefront/api/deps.py
import redis

from storefront.services.notification_service import NotificationService
from storefront.services.payment_gateway import HttpPaymentGateway, PaymentGateway
from storefront.utils.settings import REDIS_URL

_redis_client = None


def get_redis() -> redis.Redis:
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.Redis.from_url(REDIS_URL, decode_responses=True)
    return _redis_client


def get_payment_gateway() -> PaymentGateway:
    return HttpPaymentGateway()


def get_notifier() -> NotificationService:
    return NotificationService()
