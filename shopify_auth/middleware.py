"""Starlette middleware driving the Shopify OAuth authorization-code flow.

Two paths are intercepted:

* ``auth_path`` starts the flow: resolve the shop, issue a nonce, optionally
  run the ``on_permission`` hook, then redirect to Shopify's authorize page.
* ``auth_callback_path`` finishes it: check the query parameters, the nonce,
  the HMAC and the shop hostname, exchange the code for a token, run the
  ``on_auth`` hook, then redirect to the success URL.

Every other request passes straight through. Every failure is handed to the
single ``on_error`` hook.
"""

import asyncio
import hmac
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response
from starlette.types import ASGIApp

from shopify_auth.core.config import AuthConfig
from shopify_auth.core.exceptions import (
    HookError,
    IntegrityError,
    InvalidHostnameError,
    MissingParametersError,
    ShopifyAuthError,
    ShopResolutionError,
    StateMismatchError,
    TokenExchangeError,
)
from shopify_auth.core.security import generate_nonce
from shopify_auth.integrations.shopify.oauth import (
    TokenExchanger,
    build_auth_url,
    callback_url,
    is_valid_shop_hostname,
    verify_hmac,
)
from shopify_auth.stores import MemoryStateStore, StateStore

logger = logging.getLogger(__name__)

REQUIRED_CALLBACK_PARAMS = ("code", "hmac", "timestamp", "state", "shop")

T = TypeVar("T")


def redirect(url: str) -> RedirectResponse:
    """302 redirect, matching what Shopify and browsers expect for OAuth hops."""
    return RedirectResponse(url, status_code=302)


class ShopifyAuthMiddleware(BaseHTTPMiddleware):
    """Handle Shopify OAuth for a wrapped ASGI application.

    Usage::

        app.add_middleware(
            ShopifyAuthMiddleware,
            config=AuthConfig(..., shop=shop_from_query, on_auth=save_token),
        )
    """

    def __init__(
        self,
        app: ASGIApp,
        config: AuthConfig,
        store: StateStore | None = None,
        exchanger: TokenExchanger | None = None,
    ) -> None:
        super().__init__(app)
        self.config = config
        self.store = store if store is not None else MemoryStateStore()
        self.exchanger = exchanger if exchanger is not None else TokenExchanger()
        self.redirect_uri = callback_url(config.base_url, config.auth_callback_path)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if path not in (self.config.auth_path, self.config.auth_callback_path):
            return await call_next(request)

        try:
            if path == self.config.auth_path:
                return await self.start(request)
            return await self.callback(request)
        except ShopifyAuthError as e:
            return await self.handle_error(e, request, call_next)

    async def start(self, request: Request) -> Response:
        """Issue a nonce for the shop and redirect to Shopify's authorize page."""
        try:
            shop = await self.config.shop(request)
        except Exception as e:
            raise ShopResolutionError(f"could not resolve shop: {e}") from e
        if not shop:
            raise ShopResolutionError("no shop given")
        if not is_valid_shop_hostname(shop):
            raise InvalidHostnameError(shop)

        nonce = generate_nonce(self.config.random_source)
        await self.store.save(shop, nonce)

        redirect_url = build_auth_url(
            shop,
            nonce,
            client_id=self.config.app_key,
            scope=self.config.scope,
            redirect_uri=self.redirect_uri,
        )
        logger.info("Starting Shopify OAuth for %s", shop)

        if self.config.on_permission is not None:
            await self._run_hook("on_permission", self.config.on_permission, shop, redirect_url)
        return redirect(redirect_url)

    async def callback(self, request: Request) -> Response:
        """Validate Shopify's callback, exchange the code and finish the flow."""
        params = dict(request.query_params)

        missing = [key for key in REQUIRED_CALLBACK_PARAMS if not params.get(key)]
        if missing:
            raise MissingParametersError(received=params.keys(), missing=missing)

        shop = params["shop"]
        stored = await self.store.get(shop)
        if stored is None or not hmac.compare_digest(stored.encode(), params["state"].encode()):
            raise StateMismatchError("state not found in cache")

        if not verify_hmac(self.config.app_secret, params):
            raise IntegrityError("integrity error (signature mismatch)")

        if not is_valid_shop_hostname(shop):
            raise InvalidHostnameError(shop)

        if self.config.consume_state:
            # Invalidated only after verification. At most one concurrent
            # replay of a callback gets the nonce back from pop.
            consumed = await self.store.pop(shop)
            if consumed is None or not hmac.compare_digest(
                consumed.encode(), params["state"].encode()
            ):
                raise StateMismatchError("state already consumed")

        try:
            access_token = await self.exchanger.exchange(
                self.config.app_key, self.config.app_secret, params["code"], shop
            )
        except TokenExchangeError:
            raise
        except Exception as e:
            raise TokenExchangeError(f"token exchange for {shop} failed") from e

        response = redirect(self.config.redirect_url or self.config.auth_success_url)
        await self._run_hook("on_auth", self.config.on_auth, request, response, shop, access_token)
        logger.info("Shopify OAuth complete for %s", shop)
        return response

    async def handle_error(
        self,
        exc: ShopifyAuthError,
        request: Request,
        call_next: Callable[..., Awaitable[Any]],
    ) -> Response:
        """Route a flow failure to the configured error hook (or the default)."""
        if self.config.on_error is not None:
            return await self.config.on_error(exc, request, call_next)
        return self.default_error_handler(exc)

    def default_error_handler(self, exc: ShopifyAuthError) -> Response:
        """Log server-side and send the user to the fail URL without details."""
        logger.error("Shopify OAuth failed (%s): %s", type(exc).__name__, exc, exc_info=exc)
        return redirect(self.config.auth_fail_url)

    async def _run_hook(self, name: str, hook: Callable[..., Awaitable[T]], *args: Any) -> T:
        """Call and await an application hook, applying ``hook_timeout`` if configured."""
        try:
            call = hook(*args)
            if self.config.hook_timeout is None:
                return await call
            return await asyncio.wait_for(call, timeout=self.config.hook_timeout)
        except TimeoutError as e:
            raise HookError(f"{name} hook timed out after {self.config.hook_timeout}s") from e
        except Exception as e:
            raise HookError(f"{name} hook failed: {e}") from e
