# storefront/repos/cart_repo.py
import json
from typing import List

import redis
from pydantic import ValidationError

from storefront.domain.checkout import CartLine
from storefront.utils.retry import redis_retry
from storefront.utils.settings import REDIS_URL, CART_TTL_SECONDS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class CartRepo:
    """
    Full cart snapshot per user, stored as one JSON value under cart:{user_id}.
    The whole snapshot is rewritten on every save, there are no partial writes.
    """

    def __init__(self, client: redis.Redis | None = None, ttl: int = CART_TTL_SECONDS):
        self.redis = client or redis.Redis.from_url(REDIS_URL, decode_responses=True)
        self.ttl = ttl

    @staticmethod
    def _key(user_id: str) -> str:
        return f"cart:{user_id}"

    @redis_retry()
    def load(self, user_id: str) -> List[CartLine]:
        raw = self.redis.get(self._key(user_id))
        if not raw:
            return []

        try:
            return [CartLine.model_validate(item) for item in json.loads(raw)]
        except (ValueError, TypeError, ValidationError) as e:
            #corrupt snapshot behaves like an empty cart
            logger.warning(f"Discarding unreadable cart snapshot for user {user_id}: {e}")
            return []

    @redis_retry()
    def save(self, user_id: str, lines: List[CartLine]) -> None:
        if not lines:
            self.redis.delete(self._key(user_id))
            return

        payload = json.dumps([line.model_dump(mode="json") for line in lines])
        self.redis.set(name=self._key(user_id), value=payload, ex=self.ttl)

    @redis_retry()
    def delete(self, user_id: str) -> None:
        self.redis.delete(self._key(user_id))
