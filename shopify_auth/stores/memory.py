"""In-memory pending state store with LRU eviction and per-entry expiry."""

import threading
import time
from collections import OrderedDict
from collections.abc import Callable

from shopify_auth.stores.base import STATE_MAX_ENTRIES, STATE_TTL_SECONDS, StateStore


class MemoryStateStore(StateStore):
    """Bounded in-process state store.

    Holds at most ``max_entries`` nonces; inserting past that evicts the least
    recently used shop. Each entry expires ``ttl_seconds`` after it was saved.

    Warning:
        State lives in this process only. Behind several workers use
        :class:`~shopify_auth.stores.redis.RedisStateStore` instead.
    """

    def __init__(
        self,
        max_entries: int = STATE_MAX_ENTRIES,
        ttl_seconds: float = STATE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize memory state store.

        Args:
            max_entries: Capacity before least-recently-used eviction.
            ttl_seconds: Time-to-live for state entries in seconds.
            clock: Monotonic time source, injectable for tests.
        """
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._entries: OrderedDict[str, tuple[str, float]] = OrderedDict()
        self._max_entries = max_entries
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()

    async def save(self, shop: str, nonce: str) -> None:
        """Save OAuth state."""
        with self._lock:
            self._entries[shop] = (nonce, self._clock() + self._ttl)
            self._entries.move_to_end(shop)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

    async def get(self, shop: str) -> str | None:
        """Retrieve OAuth state, refreshing its recency."""
        with self._lock:
            entry = self._entries.get(shop)
            if entry is None:
                return None
            nonce, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[shop]
                return None
            self._entries.move_to_end(shop)
            return nonce

    async def delete(self, shop: str) -> None:
        """Delete OAuth state."""
        with self._lock:
            self._entries.pop(shop, None)

    async def pop(self, shop: str) -> str | None:
        """Remove and return OAuth state in one step."""
        with self._lock:
            entry = self._entries.pop(shop, None)
            if entry is None:
                return None
            nonce, expires_at = entry
            if self._clock() >= expires_at:
                return None
            return nonce

    def __len__(self) -> int:
        with self._lock:
            self._cleanup_expired()
            return len(self._entries)

    def _cleanup_expired(self) -> None:
        """Remove expired entries. Caller holds the lock."""
        now = self._clock()
        expired = [shop for shop, (_, expires_at) in self._entries.items() if now >= expires_at]
        for shop in expired:
            del self._entries[shop]
