"""
evesync Async Remote Client

Async HTTP client for the game API using httpx. Endpoints are addressed by
key (e.g. ``"char:WalletJournal"``) so the sync engine never builds URLs.

Usage:
    async with AsyncRemoteClient() as client:
        info = await client.fetch("account:APIKeyInfo", {"keyID": 1, "vCode": "abc"})

Error mapping:
    - Timeouts and network errors -> TransportError
    - 401/403 -> AuthError
    - 420/429 -> RateLimitError (retried only when rate_limit_retries > 0)
    - Any other non-2xx -> TransportError with status_code
"""

from __future__ import annotations

import json
import string
from typing import TYPE_CHECKING, Any, Optional, Protocol

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .config import get_settings
from .constants import AUTH_STATUS_CODES, DEFAULT_TYPE_HREF_BASE_URL, RATE_LIMIT_STATUS_CODES
from .errors import AuthError, RateLimitError, TransportError
from .logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = get_logger(__name__)


# =============================================================================
# Endpoint Registry
# =============================================================================

# Path templates relative to the client's base URL (market_base_url for
# "market:" keys). Placeholders are filled from the call params; leftover
# params become the query string.
ENDPOINTS: dict[str, str] = {
    "account:APIKeyInfo": "account/APIKeyInfo",
    "char:WalletTransactions": "char/WalletTransactions",
    "char:WalletJournal": "char/WalletJournal",
    "char:MarketOrders": "char/MarketOrders",
    "char:CharacterSheet": "char/CharacterSheet",
    "eve:CharacterInfo": "eve/CharacterInfo",
    "market:SellOrders": "market/{regionID}/orders/sell/",
    "market:BuyOrders": "market/{regionID}/orders/buy/",
    "market:History": "market/{regionID}/types/{typeID}/history/",
    "market:Group": "market/groups/{marketGroupID}/",
}

MARKET_ENDPOINT_PREFIX = "market:"

# Order books are filtered by type href rather than by a bare typeID
TYPE_FILTERED_ENDPOINTS = frozenset({"market:SellOrders", "market:BuyOrders"})


class RemoteFetch(Protocol):
    """Authenticated remote call returning a parsed (nested) payload."""

    async def fetch(
        self,
        endpoint_key: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        timeout_ms: Optional[int] = None,
        token: Optional[str] = None,
    ) -> Any: ...


def build_request_path(
    endpoint_key: str, params: Optional[Mapping[str, Any]] = None
) -> tuple[str, dict[str, Any]]:
    """
    Resolve an endpoint key into a path and query params.

    Raises:
        KeyError: Unknown endpoint key or a missing path placeholder
    """
    template = ENDPOINTS[endpoint_key]
    params = dict(params or {})

    placeholders = [name for _, name, _, _ in string.Formatter().parse(template) if name]
    missing = [name for name in placeholders if name not in params]
    if missing:
        raise KeyError(f"{endpoint_key} requires params: {', '.join(missing)}")

    path = template.format(**{name: params.pop(name) for name in placeholders})
    if endpoint_key in TYPE_FILTERED_ENDPOINTS and "typeID" in params:
        params["type"] = f"{DEFAULT_TYPE_HREF_BASE_URL}types/{params.pop('typeID')}/"
    return path, params


# =============================================================================
# Async Client
# =============================================================================


class AsyncRemoteClient:
    """
    Async HTTP client for remote API requests.

    Must be used as an async context manager so the underlying
    httpx.AsyncClient is opened and closed exactly once.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        market_base_url: Optional[str] = None,
        timeout_ms: Optional[int] = None,
        rate_limit_retries: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: API base URL (default: settings.api_base_url)
            market_base_url: Base URL for "market:" endpoints (default: settings.market_base_url)
            timeout_ms: Default per-call timeout (default: settings.timeout_ms)
            rate_limit_retries: Extra attempts for rate-limited calls (default: settings)
            transport: Optional httpx transport (used by tests)
        """
        settings = get_settings()
        self.base_url: str = base_url or settings.api_base_url
        self.market_base_url: str = market_base_url or settings.market_base_url
        self.timeout_ms: int = timeout_ms if timeout_ms is not None else settings.timeout_ms
        self.rate_limit_retries: int = (
            rate_limit_retries if rate_limit_retries is not None else settings.rate_limit_retries
        )
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> AsyncRemoteClient:
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout_ms / 1000.0),
            headers={"Accept": "application/json"},
            transport=self._transport,
        )
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[Any],
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def fetch(
        self,
        endpoint_key: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        timeout_ms: Optional[int] = None,
        token: Optional[str] = None,
    ) -> Any:
        """
        Fetch an endpoint and return its parsed JSON body.

        Args:
            endpoint_key: Key into ENDPOINTS
            params: Path placeholders and query parameters
            timeout_ms: Per-call timeout override
            token: Bearer token for authenticated endpoints

        Raises:
            TransportError, RateLimitError, AuthError
        """
        if self.rate_limit_retries <= 0:
            return await self._fetch_once(endpoint_key, params, timeout_ms, token)

        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(RateLimitError),
            stop=stop_after_attempt(self.rate_limit_retries + 1),
            wait=wait_exponential(multiplier=1, min=0.5, max=30.0),
            reraise=True,
        ):
            with attempt:
                return await self._fetch_once(endpoint_key, params, timeout_ms, token)

    async def _fetch_once(
        self,
        endpoint_key: str,
        params: Optional[Mapping[str, Any]],
        timeout_ms: Optional[int],
        token: Optional[str],
    ) -> Any:
        if not self._client:
            raise TransportError(
                "Client not initialized. Use 'async with' context manager.",
                endpoint=endpoint_key,
            )

        path, query = build_request_path(endpoint_key, params)
        if endpoint_key.startswith(MARKET_ENDPOINT_PREFIX):
            # Absolute URLs bypass the client's base_url
            path = self.market_base_url + path
        headers = {"Authorization": f"Bearer {token}"} if token else None
        timeout = httpx.Timeout((timeout_ms or self.timeout_ms) / 1000.0)

        logger.debug("GET %s (%s)", path, endpoint_key)
        try:
            response = await self._client.get(
                path, params=query or None, headers=headers, timeout=timeout
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"Timed out: {e}", endpoint=endpoint_key) from e
        except httpx.RequestError as e:
            raise TransportError(f"Network error: {e}", endpoint=endpoint_key) from e

        if response.is_success:
            try:
                return response.json()
            except json.JSONDecodeError as e:
                raise TransportError(
                    f"Invalid JSON body: {e}",
                    status_code=response.status_code,
                    endpoint=endpoint_key,
                ) from e

        raise _error_for_response(response, endpoint_key)


def _error_for_response(response: httpx.Response, endpoint_key: str) -> Exception:
    try:
        body = response.json()
        message = body.get("error", response.reason_phrase) if isinstance(body, dict) else str(body)
    except json.JSONDecodeError:
        message = response.text or response.reason_phrase

    status = response.status_code
    if status in AUTH_STATUS_CODES:
        return AuthError(message, status_code=status)
    if status in RATE_LIMIT_STATUS_CODES:
        retry_after = response.headers.get("retry-after")
        return RateLimitError(
            message,
            status_code=status,
            endpoint=endpoint_key,
            retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
        )
    return TransportError(message, status_code=status, endpoint=endpoint_key)
