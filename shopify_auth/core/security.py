"""Randomness providers and nonce generation for the OAuth ``state`` parameter."""

import logging
import random
import secrets
from typing import Protocol

logger = logging.getLogger(__name__)

NONCE_BYTES = 12


class RandomSource(Protocol):
    """Anything that can hand out ``n`` random bytes."""

    def token_bytes(self, nbytes: int) -> bytes: ...


class SecureRandomSource:
    """Cryptographically secure bytes from the OS via :mod:`secrets`."""

    def token_bytes(self, nbytes: int) -> bytes:
        return secrets.token_bytes(nbytes)


class BestEffortRandomSource:
    """Pseudo-random bytes. Not suitable for secrets.

    Accepts a seed so tests can get a deterministic sequence.
    """

    def __init__(self, seed: int | None = None) -> None:
        self._random = random.Random(seed)

    def token_bytes(self, nbytes: int) -> bytes:
        return self._random.randbytes(nbytes)


class FallbackRandomSource:
    """Use ``primary`` and switch to ``fallback`` when it is unavailable.

    The fallback keeps the auth flow available when the OS entropy source
    fails, at the cost of a guessable ``state`` and therefore weaker CSRF
    protection for that request.
    """

    def __init__(self, primary: RandomSource, fallback: RandomSource) -> None:
        self.primary = primary
        self.fallback = fallback

    def token_bytes(self, nbytes: int) -> bytes:
        try:
            return self.primary.token_bytes(nbytes)
        except (NotImplementedError, OSError) as e:
            logger.warning("Secure random source unavailable, using fallback: %s", e)
            return self.fallback.token_bytes(nbytes)


def default_random_source() -> RandomSource:
    """Secure source with a best-effort fallback."""
    return FallbackRandomSource(SecureRandomSource(), BestEffortRandomSource())


def generate_nonce(source: RandomSource, nbytes: int = NONCE_BYTES) -> str:
    """Generate a hex-encoded nonce (24 characters for the default 12 bytes)."""
    return source.token_bytes(nbytes).hex()
