"""Errors raised by the Shopify OAuth flow.

Every flow error is a ``ShopifyAuthError`` and is routed to the middleware's
error hook instead of the host application's exception handlers.
"""

from collections.abc import Iterable


class ShopifyAuthError(Exception):
    """Base class for all OAuth flow errors."""


class ConfigurationError(ShopifyAuthError):
    """Invalid or incomplete auth configuration."""


class ShopResolutionError(ShopifyAuthError):
    """The shop resolver failed or returned nothing."""


class MissingParametersError(ShopifyAuthError):
    """The callback query lacks one or more required parameters."""

    def __init__(self, received: Iterable[str], missing: Iterable[str]) -> None:
        self.received = list(received)
        self.missing = list(missing)
        super().__init__(
            "missing required query parameters "
            f"{','.join(self.missing)} (got {','.join(self.received)})"
        )


class StateMismatchError(ShopifyAuthError):
    """The callback ``state`` was never issued, has expired, or does not match."""


class IntegrityError(ShopifyAuthError):
    """The callback HMAC signature does not match the parameters."""


class InvalidHostnameError(ShopifyAuthError):
    """The shop parameter is not a valid myshopify.com hostname."""

    def __init__(self, hostname: str) -> None:
        self.hostname = hostname
        super().__init__(f"invalid shop hostname `{hostname}`")


class TokenExchangeError(ShopifyAuthError):
    """Exchanging the authorization code for an access token failed."""


class HookError(ShopifyAuthError):
    """An application hook raised or timed out."""
