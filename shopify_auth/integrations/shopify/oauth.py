"""Shopify OAuth helpers for HMAC verification, shop validation and token exchange."""

import hashlib
import hmac
import logging
import re
from collections.abc import Mapping, Sequence
from typing import Any
from urllib.parse import urlencode, urljoin

import httpx

from shopify_auth.core.exceptions import TokenExchangeError

logger = logging.getLogger(__name__)

SHOP_DOMAIN = "myshopify.com"
INVALID_HOSTNAME_CHAR_RE = re.compile(r"[^0-9a-zA-Z.\-]")

# Keys carrying the signature itself are never part of the signed message
SIGNATURE_KEYS = frozenset({"hmac", "signature"})


def _escape(text: str) -> str:
    # % must go first so the escapes added below are not escaped again
    return text.replace("%", "%25").replace("&", "%26").replace("=", "%3D")


def canonical_message(params: Mapping[str, str]) -> str:
    """Build the message Shopify signs: sorted ``key=value`` pairs joined by ``&``.

    Raises:
        TypeError: If a key or value is not a string.
    """
    pairs = []
    for key in sorted(k for k in params if k not in SIGNATURE_KEYS):
        value = params[key]
        if not isinstance(key, str) or not isinstance(value, str):
            raise TypeError(f"query parameter {key!r} is not a string")
        pairs.append(f"{_escape(key)}={_escape(value)}")
    return "&".join(pairs)


def compute_hmac(secret: str, params: Mapping[str, str]) -> str:
    """Compute the lowercase hex HMAC-SHA256 of the canonical parameter message."""
    return hmac.new(
        secret.encode("utf-8"),
        canonical_message(params).encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def verify_hmac(secret: str, params: Mapping[str, Any]) -> bool:
    """Verify Shopify OAuth callback HMAC signature.

    Args:
        secret: The Shopify client secret.
        params: All query parameters from the callback URL.

    Returns:
        True if the ``hmac`` parameter matches the recomputed signature.
        False on mismatch, when ``hmac`` is absent, or when any value is
        not a string.
    """
    received = params.get("hmac")
    if not isinstance(received, str):
        return False
    try:
        computed = compute_hmac(secret, params)
    except TypeError:
        return False
    return hmac.compare_digest(computed.encode(), received.encode())


def is_valid_shop_hostname(hostname: Any) -> bool:
    """Check that ``hostname`` is a plain ``*.myshopify.com`` host name."""
    if not isinstance(hostname, str) or not hostname:
        return False
    if INVALID_HOSTNAME_CHAR_RE.search(hostname):
        return False
    return hostname.endswith(SHOP_DOMAIN)


def build_auth_url(
    shop: str,
    nonce: str,
    *,
    client_id: str,
    scope: Sequence[str],
    redirect_uri: str,
) -> str:
    """Build the Shopify OAuth authorization URL.

    Args:
        shop: The shop domain (e.g. mystore.myshopify.com).
        nonce: Random state parameter for CSRF protection.
        client_id: The app's API key.
        scope: Requested access scopes, sent comma-joined.
        redirect_uri: Absolute URL of the OAuth callback.

    Returns:
        The full authorization URL to redirect the merchant to.
    """
    params = urlencode({
        "client_id": client_id,
        "scope": ",".join(scope),
        "redirect_uri": redirect_uri,
        "state": nonce,
    })
    return f"https://{shop}/admin/oauth/authorize?{params}"


def callback_url(base_url: str, callback_path: str) -> str:
    """Resolve the callback path against the server's base URL."""
    return urljoin(base_url, callback_path)


class TokenExchanger:
    """Exchanges an authorization code for a permanent access token.

    Makes a single attempt; retries are left to the caller. Pass ``client`` to
    reuse a connection pool (or a mock transport in tests); otherwise a
    short-lived client is opened per exchange.
    """

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float = 30.0) -> None:
        self.client = client
        self.timeout = timeout

    async def exchange(self, app_key: str, app_secret: str, code: str, shop_domain: str) -> str:
        """Exchange the OAuth authorization code for an access token.

        Args:
            app_key: The Shopify client id.
            app_secret: The Shopify client secret.
            code: The authorization code from Shopify.
            shop_domain: The shop domain.

        Returns:
            The access token string.

        Raises:
            TokenExchangeError: On transport failure, a non-2xx status, an
                unparseable body or a missing ``access_token``.
        """
        url = f"https://{shop_domain}/admin/oauth/access_token"
        form = {"client_id": app_key, "client_secret": app_secret, "code": code}

        try:
            if self.client is not None:
                response = await self.client.post(url, data=form)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(url, data=form)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TokenExchangeError(
                f"token endpoint for {shop_domain} returned {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise TokenExchangeError(f"token request to {shop_domain} failed: {e!r}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise TokenExchangeError(f"invalid JSON from token endpoint for {shop_domain}") from e

        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not access_token or not isinstance(access_token, str):
            raise TokenExchangeError("no access token supplied by shopify")

        logger.debug("Obtained access token for %s", shop_domain)
        return access_token


async def exchange_code_for_token(
    shop: str,
    code: str,
    *,
    app_key: str,
    app_secret: str,
    timeout: float = 30.0,
) -> str:
    """Exchange an authorization code using a one-off :class:`TokenExchanger`."""
    return await TokenExchanger(timeout=timeout).exchange(app_key, app_secret, code, shop)
