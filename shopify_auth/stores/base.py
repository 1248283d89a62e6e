"""Abstract base class for pending OAuth state stores."""

from abc import ABC, abstractmethod

STATE_TTL_SECONDS = 300  # 5 minutes
STATE_MAX_ENTRIES = 5000


class StateStore(ABC):
    """Maps a shop domain to the nonce issued when its authorization started.

    Entries are short-lived: once the TTL passes (or the entry is evicted) a
    lookup returns None and the callback is rejected as if the state had
    never been issued.
    """

    @abstractmethod
    async def save(self, shop: str, nonce: str) -> None:
        """Save the nonce for a shop, replacing any previous one.

        Args:
            shop: Shop domain the authorization was started for.
            nonce: The ``state`` value sent to Shopify.
        """

    @abstractmethod
    async def get(self, shop: str) -> str | None:
        """Retrieve the pending nonce for a shop.

        Args:
            shop: Shop domain.

        Returns:
            The nonce if present and unexpired, None otherwise.
        """

    @abstractmethod
    async def delete(self, shop: str) -> None:
        """Invalidate the pending nonce for a shop.

        Args:
            shop: Shop domain.
        """

    @abstractmethod
    async def pop(self, shop: str) -> str | None:
        """Atomically retrieve and invalidate the pending nonce for a shop.

        Of several concurrent callers for the same entry, at most one gets the
        nonce back; the others see None.

        Args:
            shop: Shop domain.

        Returns:
            The nonce if present and unexpired, None otherwise.
        """
