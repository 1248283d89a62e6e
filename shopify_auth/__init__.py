"""Shopify OAuth authorization-code flow for Starlette and FastAPI."""

from shopify_auth.core.config import AuthConfig, Settings
from shopify_auth.core.exceptions import (
    ConfigurationError,
    HookError,
    IntegrityError,
    InvalidHostnameError,
    MissingParametersError,
    ShopifyAuthError,
    ShopResolutionError,
    StateMismatchError,
    TokenExchangeError,
)
from shopify_auth.integrations.shopify.oauth import (
    TokenExchanger,
    is_valid_shop_hostname,
    verify_hmac,
)
from shopify_auth.middleware import ShopifyAuthMiddleware
from shopify_auth.stores import MemoryStateStore, RedisStateStore, StateStore

__all__ = [
    "AuthConfig",
    "ConfigurationError",
    "HookError",
    "IntegrityError",
    "InvalidHostnameError",
    "MemoryStateStore",
    "MissingParametersError",
    "RedisStateStore",
    "Settings",
    "ShopResolutionError",
    "ShopifyAuthError",
    "ShopifyAuthMiddleware",
    "StateMismatchError",
    "StateStore",
    "TokenExchangeError",
    "TokenExchanger",
    "is_valid_shop_hostname",
    "verify_hmac",
]
