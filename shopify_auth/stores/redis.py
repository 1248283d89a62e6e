"""Redis-backed pending state store for multi-process deployments."""

import redis.asyncio as aioredis

from shopify_auth.stores.base import STATE_TTL_SECONDS, StateStore


class RedisStateStore(StateStore):
    """State store using Redis key expiry for the TTL.

    Capacity is bounded by the Redis server's own memory policy rather than
    an entry count.
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        ttl_seconds: int = STATE_TTL_SECONDS,
        key_prefix: str = "shopify_oauth:",
    ) -> None:
        self.redis = redis
        self.ttl_seconds = ttl_seconds
        self.key_prefix = key_prefix

    def _key(self, shop: str) -> str:
        return f"{self.key_prefix}{shop}"

    async def save(self, shop: str, nonce: str) -> None:
        await self.redis.set(self._key(shop), nonce, ex=self.ttl_seconds)

    async def get(self, shop: str) -> str | None:
        return _decode(await self.redis.get(self._key(shop)))

    async def pop(self, shop: str) -> str | None:
        # GETDEL, so concurrent callbacks cannot both read the nonce
        return _decode(await self.redis.getdel(self._key(shop)))

    async def delete(self, shop: str) -> None:
        await self.redis.delete(self._key(shop))

    @classmethod
    def from_url(cls, url: str, **kwargs: int | str) -> "RedisStateStore":
        """Create a store with its own connection pool."""
        client = aioredis.Redis.from_url(url, decode_responses=True)
        return cls(client, **kwargs)  # type: ignore[arg-type]


def _decode(value: bytes | str | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)
