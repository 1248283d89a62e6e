"""FastAPI application wired with the Shopify OAuth middleware."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, Response

from shopify_auth.core.config import AuthConfig, AuthHook, Settings, get_settings
from shopify_auth.core.logging_config import (
    generate_request_id,
    request_id_var,
    setup_logging,
)
from shopify_auth.integrations.shopify.oauth import TokenExchanger
from shopify_auth.middleware import ShopifyAuthMiddleware
from shopify_auth.stores import MemoryStateStore, RedisStateStore, StateStore

logger = logging.getLogger(__name__)


async def shop_from_query(request: Request) -> str:
    """Resolve the shop from the ``?shop=`` query parameter."""
    shop = request.query_params.get("shop")
    if not shop:
        raise ValueError("missing `shop` query parameter")
    return shop


def build_state_store(app_settings: Settings) -> StateStore:
    """Redis when configured, otherwise the in-process LRU store."""
    if app_settings.redis_url:
        return RedisStateStore.from_url(
            app_settings.redis_url, ttl_seconds=app_settings.state_ttl_seconds
        )
    return MemoryStateStore(
        max_entries=app_settings.state_max_entries,
        ttl_seconds=app_settings.state_ttl_seconds,
    )


def create_app(
    app_settings: Settings | None = None,
    *,
    on_auth: AuthHook | None = None,
    store: StateStore | None = None,
    exchanger: TokenExchanger | None = None,
    **config_overrides: Any,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Without an ``on_auth`` hook, tokens are kept in ``app.state.access_tokens``
    keyed by shop, which is only good enough for local development.
    """
    app_settings = app_settings or get_settings()

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan manager."""
        setup_logging(debug=app_settings.debug, redact=[app_settings.shopify_client_secret])
        logger.info("Starting %s v%s", app_settings.project_name, app_settings.version)
        logger.info("Environment: %s", app_settings.environment)
        yield
        logger.info("Shutting down...")

    app = FastAPI(
        title=app_settings.project_name,
        version=app_settings.version,
        lifespan=lifespan,
    )
    app.state.access_tokens = {}

    async def keep_token(_request: Request, _response: Response, shop: str, token: str) -> None:
        app.state.access_tokens[shop] = token

    config = AuthConfig.from_settings(
        app_settings,
        shop=shop_from_query,
        on_auth=on_auth or keep_token,
        **config_overrides,
    )
    app.add_middleware(
        ShopifyAuthMiddleware,
        config=config,
        store=store if store is not None else build_state_store(app_settings),
        exchanger=exchanger or TokenExchanger(timeout=app_settings.token_exchange_timeout),
    )

    # Request ID middleware (added last so it wraps the auth flow)
    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next: Any) -> Response:
        rid = request.headers.get("X-Request-ID") or generate_request_id()
        request_id_var.set(rid)
        response: Response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response

    @app.get("/")
    async def root() -> dict[str, Any]:
        """Root endpoint with API information."""
        return {
            "name": app_settings.project_name,
            "version": app_settings.version,
            "auth": config.auth_path,
        }

    @app.get("/health/live")
    async def liveness_check() -> dict[str, str]:
        """Liveness probe for container orchestration."""
        return {"status": "alive"}

    @app.get(config.auth_success_url)
    async def auth_success() -> dict[str, str]:
        return {"status": "authenticated"}

    @app.get(config.auth_fail_url)
    async def auth_fail() -> dict[str, str]:
        return {"status": "failed"}

    return app
