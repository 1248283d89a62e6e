"""Pytest configuration and fixtures for the shopify-auth test suite.

Provides:
- Shopify test credentials and a callback HMAC signer
- A deterministic random source and a fake clock
- A mock Shopify token endpoint (httpx.MockTransport)
- An app wrapped in ShopifyAuthMiddleware plus an httpx client for it
"""

import hashlib
import hmac
import json
from collections.abc import AsyncGenerator, Callable
from typing import Any
from unittest.mock import AsyncMock

import fakeredis.aioredis
import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from shopify_auth.core.config import AuthConfig, Settings
from shopify_auth.core.security import BestEffortRandomSource
from shopify_auth.integrations.shopify.oauth import TokenExchanger
from shopify_auth.middleware import ShopifyAuthMiddleware
from shopify_auth.stores import MemoryStateStore

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
SHOPIFY_TEST_CLIENT_ID = "test-shopify-client-id"
SHOPIFY_TEST_CLIENT_SECRET = "test-shopify-client-secret"
SHOPIFY_TEST_SHOP = "test-store.myshopify.com"
SHOPIFY_TEST_ACCESS_TOKEN = "shpat_test_access_token_123"
BASE_URL = "http://localhost:8000"
AUTH_PATH = "/auth"
AUTH_CALLBACK_PATH = "/auth/callback"
AUTH_SUCCESS_URL = "/success"
AUTH_FAIL_URL = "/fail"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_redis() -> fakeredis.aioredis.FakeRedis:
    """Provide a fresh fakeredis instance per test."""
    return fakeredis.aioredis.FakeRedis(decode_responses=True)


@pytest.fixture
def shopify_oauth_hmac() -> Callable[[dict[str, str]], str]:
    """Generate a valid Shopify OAuth callback HMAC for query params.

    Written out independently of the library's own canonicalisation: sorted
    params (excluding hmac/signature), ``%``/``&``/``=`` escaped in keys and
    values, joined with ``&``.

    Usage:
        params = {"code": "abc", "shop": "store.myshopify.com", "state": "nonce123"}
        params["hmac"] = shopify_oauth_hmac(params)
    """

    def _escape(s: str) -> str:
        return s.replace("%", "%25").replace("&", "%26").replace("=", "%3D")

    def _compute(params: dict[str, str], secret: str = SHOPIFY_TEST_CLIENT_SECRET) -> str:
        message = "&".join(
            f"{_escape(k)}={_escape(v)}"
            for k, v in sorted(params.items())
            if k not in ("hmac", "signature")
        )
        return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()

    return _compute


# ---------------------------------------------------------------------------
# Mock Shopify token endpoint
# ---------------------------------------------------------------------------


class TokenEndpoint:
    """Records token requests and answers with a configurable response."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.body: Any = {
            "access_token": SHOPIFY_TEST_ACCESS_TOKEN,
            "scope": "read_products",
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.body, (dict, list)):
            return httpx.Response(self.status_code, content=json.dumps(self.body).encode())
        return httpx.Response(self.status_code, content=self.body)


@pytest.fixture
def token_endpoint() -> TokenEndpoint:
    return TokenEndpoint()


@pytest_asyncio.fixture
async def exchanger(token_endpoint: TokenEndpoint) -> AsyncGenerator[TokenExchanger, None]:
    """TokenExchanger talking to the mock token endpoint."""
    async with httpx.AsyncClient(transport=httpx.MockTransport(token_endpoint.handler)) as client:
        yield TokenExchanger(client=client)


# ---------------------------------------------------------------------------
# Middleware under test
# ---------------------------------------------------------------------------


@pytest.fixture
def state_store(clock: FakeClock) -> MemoryStateStore:
    return MemoryStateStore(clock=clock)


@pytest.fixture
def on_auth() -> AsyncMock:
    return AsyncMock(return_value=None)


@pytest.fixture
def make_config(on_auth: AsyncMock) -> Callable[..., AuthConfig]:
    """Factory for AuthConfig with test defaults; keyword args override."""

    async def _shop(request: Any) -> str:
        shop = request.query_params.get("shop")
        if not shop:
            raise ValueError("no shop in query")
        return shop

    def _make(**overrides: Any) -> AuthConfig:
        values: dict[str, Any] = {
            "app_key": SHOPIFY_TEST_CLIENT_ID,
            "app_secret": SHOPIFY_TEST_CLIENT_SECRET,
            "base_url": BASE_URL,
            "auth_path": AUTH_PATH,
            "auth_callback_path": AUTH_CALLBACK_PATH,
            "auth_success_url": AUTH_SUCCESS_URL,
            "auth_fail_url": AUTH_FAIL_URL,
            "scope": ["read_products", "write_products"],
            "shop": _shop,
            "on_auth": on_auth,
            "random_source": BestEffortRandomSource(seed=42),
        }
        values.update(overrides)
        return AuthConfig(**values)

    return _make


@pytest.fixture
def make_client(
    make_config: Callable[..., AuthConfig],
    state_store: MemoryStateStore,
    exchanger: TokenExchanger,
) -> Callable[..., AsyncClient]:
    """Build an AsyncClient for an app wrapped in ShopifyAuthMiddleware."""

    def _make(**config_overrides: Any) -> AsyncClient:
        app = FastAPI()

        @app.get("/")
        async def index() -> dict[str, str]:
            return {"page": "index"}

        @app.get(AUTH_SUCCESS_URL)
        async def success() -> dict[str, str]:
            return {"page": "success"}

        @app.get(AUTH_FAIL_URL)
        async def fail() -> dict[str, str]:
            return {"page": "fail"}

        app.add_middleware(
            ShopifyAuthMiddleware,
            config=make_config(**config_overrides),
            store=state_store,
            exchanger=exchanger,
        )
        return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

    return _make


@pytest.fixture
def test_settings() -> Settings:
    """Settings for the example app, independent of the environment."""
    return Settings(
        _env_file=None,
        shopify_client_id=SHOPIFY_TEST_CLIENT_ID,
        shopify_client_secret=SHOPIFY_TEST_CLIENT_SECRET,
        shopify_scopes="read_products, write_orders",
        app_url=BASE_URL,
        redis_url=None,
    )
