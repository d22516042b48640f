import redis

from enhancer.core.config import settings

PENDING = "pending"


class IdempotencyStore:
    """Idempotency-Key bookkeeping for job submission, in Redis."""

    def __init__(self, client: redis.Redis | None = None) -> None:
        self.client = client or redis.Redis.from_url(settings.redis_url, decode_responses=True)
        self.default_ttl = settings.idempotency_ttl

    @staticmethod
    def _key(key: str) -> str:
        return f"idempotency:{key}"

    def check_and_set(self, key: str, ttl_seconds: int | None = None, value: str = PENDING) -> bool:
        """Atomic operation: setnx + expire in one call."""
        ttl = ttl_seconds if ttl_seconds is not None else self.default_ttl
        created = self.client.set(self._key(key), value, nx=True, ex=ttl)
        return created is not None

    def get(self, key: str) -> str | None:
        return self.client.get(self._key(key))

    def remember(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self.default_ttl
        self.client.set(self._key(key), value, ex=ttl)

    def forget(self, key: str) -> None:
        self.client.delete(self._key(key))
