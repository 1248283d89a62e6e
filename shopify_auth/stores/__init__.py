"""Pending OAuth state stores."""

from shopify_auth.stores.base import StateStore
from shopify_auth.stores.memory import MemoryStateStore
from shopify_auth.stores.redis import RedisStateStore

__all__ = [
    "MemoryStateStore",
    "RedisStateStore",
    "StateStore",
]
