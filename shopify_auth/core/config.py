"""Configuration: environment settings and the immutable auth flow config."""

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from functools import lru_cache
from typing import TYPE_CHECKING, Any, Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from shopify_auth.core.exceptions import ConfigurationError
from shopify_auth.core.security import RandomSource, default_random_source

if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.responses import Response


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True

    project_name: str = "Shopify Auth"
    version: str = "0.1.0"

    # Shopify app credentials
    shopify_client_id: str = ""
    shopify_client_secret: str = ""
    shopify_scopes: str = "read_products"

    # Public URL of this server, used to build the OAuth redirect_uri
    app_url: str = "http://localhost:8000"

    # Flow paths
    auth_path: str = "/auth/shopify"
    auth_callback_path: str = "/auth/shopify/callback"
    auth_success_url: str = "/auth/success"
    auth_fail_url: str = "/auth/fail"

    # Pending state (nonce) storage
    state_ttl_seconds: int = 300
    state_max_entries: int = 5000
    redis_url: str | None = None

    # Network / hooks
    token_exchange_timeout: float = 30.0
    hook_timeout: float | None = None

    @property
    def scope_list(self) -> list[str]:
        """Requested scopes as a list."""
        return [s.strip() for s in self.shopify_scopes.split(",") if s.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Collaborator signatures
ShopResolver = Callable[["Request"], Awaitable[str]]
PermissionHook = Callable[[str, str], Awaitable[None]]
AuthHook = Callable[["Request", "Response", str, str], Awaitable[None]]
ErrorHook = Callable[[Exception, "Request", Callable[..., Awaitable[Any]]], Awaitable["Response"]]


@dataclass(frozen=True)
class AuthConfig:
    """Everything the auth middleware needs, supplied once at construction.

    ``app_secret`` is only ever used as the HMAC key and as a form field of the
    token exchange. It is excluded from ``repr()`` so it cannot leak into logs.
    """

    app_key: str
    app_secret: str = field(repr=False)
    base_url: str
    shop: ShopResolver
    on_auth: AuthHook
    scope: Sequence[str] = ()
    auth_path: str = "/auth/shopify"
    auth_callback_path: str = "/auth/shopify/callback"
    auth_success_url: str = "/auth/success"
    auth_fail_url: str = "/auth/fail"
    on_permission: PermissionHook | None = None
    on_error: ErrorHook | None = None
    # Overrides auth_success_url when set
    redirect_url: str | None = None
    # Seconds; None means hooks may take as long as they like
    hook_timeout: float | None = None
    random_source: RandomSource = field(default_factory=default_random_source, repr=False)
    # Invalidate the pending nonce once a callback has matched it
    consume_state: bool = True

    def __post_init__(self) -> None:
        missing = [
            name
            for name in ("app_key", "app_secret", "base_url")
            if not getattr(self, name)
        ]
        if missing:
            raise ConfigurationError(f"Missing required auth settings: {', '.join(missing)}")
        if not callable(self.shop):
            raise ConfigurationError("`shop` must be an async callable resolving the shop domain")
        if not callable(self.on_auth):
            raise ConfigurationError("`on_auth` hook is required")
        if self.auth_path == self.auth_callback_path:
            raise ConfigurationError("auth_path and auth_callback_path must differ")
        if isinstance(self.scope, str):
            # A bare string would be joined character by character
            object.__setattr__(self, "scope", tuple(s.strip() for s in self.scope.split(",")))
        else:
            object.__setattr__(self, "scope", tuple(self.scope))
        if self.hook_timeout is not None and self.hook_timeout <= 0:
            raise ConfigurationError("hook_timeout must be positive")

    @classmethod
    def from_settings(
        cls,
        app_settings: Settings,
        *,
        shop: ShopResolver,
        on_auth: AuthHook,
        **overrides: Any,
    ) -> "AuthConfig":
        """Build a config from environment settings plus the application's hooks."""
        values: dict[str, Any] = {
            "app_key": app_settings.shopify_client_id,
            "app_secret": app_settings.shopify_client_secret,
            "base_url": app_settings.app_url,
            "scope": app_settings.scope_list,
            "auth_path": app_settings.auth_path,
            "auth_callback_path": app_settings.auth_callback_path,
            "auth_success_url": app_settings.auth_success_url,
            "auth_fail_url": app_settings.auth_fail_url,
            "hook_timeout": app_settings.hook_timeout,
        }
        values.update(overrides)
        return cls(shop=shop, on_auth=on_auth, **values)
