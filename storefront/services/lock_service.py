# storefront/services/lock_service.py
import redis

from storefront.utils.retry import redis_retry
from storefront.utils.settings import REDIS_URL
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

# compare-and-delete, runs atomically inside redis
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""


class LockService:
    """
    Advisory per-cart checkout lock.

    Turns a double-submitted checkout away before the card is charged. It is
    an optimisation only: the conditional writes in the checkout transaction
    stay authoritative when redis is down or the lock expires.
    """

    def __init__(self, url: str | None = None, client: redis.Redis | None = None):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    @staticmethod
    def _key(cart_id: int) -> str:
        return f"cart:{cart_id}:checkout"

    @redis_retry()
    def acquire_checkout_lock(self, cart_id: int, token: str, ttl: int) -> bool:
        key = self._key(cart_id)
        logger.info(f"Acquire lock {key}")
        # SET cart:1:checkout <token> NX EX <ttl>
        return bool(self.redis.set(name=key, value=token, nx=True, ex=ttl))

    @redis_retry()
    def release_checkout_lock(self, cart_id: int, token: str) -> bool:
        key = self._key(cart_id)
        logger.info(f"Release lock {key}")
        res = self.redis.eval(_RELEASE_LUA, 1, key, token)
        return bool(res)
