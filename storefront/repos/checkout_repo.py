# storefront/repos/checkout_repo.py
import redis
from pydantic import ValidationError

from storefront.domain.checkout import CheckoutSession
from storefront.utils.retry import redis_retry
from storefront.utils.settings import REDIS_URL, CHECKOUT_TTL_SECONDS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class CheckoutSessionRepo:
    """
    Checkouts awaiting payment, one JSON value under checkout:{checkout_id}.
    Only the AWAITING_PAYMENT state is ever stored; a stale session expires.
    """

    def __init__(self, client: redis.Redis | None = None, ttl: int = CHECKOUT_TTL_SECONDS):
        self.redis = client or redis.Redis.from_url(REDIS_URL, decode_responses=True)
        self.ttl = ttl

    @staticmethod
    def _key(checkout_id: str) -> str:
        return f"checkout:{checkout_id}"

    @redis_retry()
    def load(self, checkout_id: str) -> CheckoutSession | None:
        raw = self.redis.get(self._key(checkout_id))
        if not raw:
            return None

        try:
            return CheckoutSession.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable checkout session {checkout_id}: {e}")
            return None

    @redis_retry()
    def save(self, session: CheckoutSession) -> None:
        self.redis.set(name=self._key(session.checkout_id), value=session.model_dump_json(), ex=self.ttl)

    @redis_retry()
    def delete(self, checkout_id: str) -> None:
        self.redis.delete(self._key(checkout_id))
