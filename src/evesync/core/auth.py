"""
evesync Credential Providers

Supplies bearer tokens for authenticated remote calls.

- StaticCredentialProvider: a fixed token (tests, pre-issued tokens)
- SSOCredentialProvider: exchanges a refresh token at the SSO login server
  and caches the access token until it expires
"""

from __future__ import annotations

import json
import time
from typing import Any, Optional, Protocol, runtime_checkable

import httpx

from .config import get_settings
from .errors import AuthError, TransportError
from .logging import get_logger

logger = get_logger(__name__)

# Refresh this many seconds before the reported expiry
EXPIRY_MARGIN_SECONDS = 60


@runtime_checkable
class CredentialProvider(Protocol):
    """Supplies access tokens; refresh() forces a new one."""

    async def get_access_token(self) -> str: ...

    async def refresh(self) -> str: ...


class StaticCredentialProvider:
    """Credential provider that always hands out the same token."""

    def __init__(self, access_token: str) -> None:
        self.access_token = access_token

    async def get_access_token(self) -> str:
        return self.access_token

    async def refresh(self) -> str:
        return self.access_token


class SSOCredentialProvider:
    """
    OAuth refresh-token credential provider.

    POSTs ``grant_type=refresh_token`` to ``{login_url}oauth/token/`` with the
    application's client ID and secret as HTTP basic auth.

    Usage:
        provider = SSOCredentialProvider(refresh_token=character.refresh_token)
        token = await provider.get_access_token()
    """

    def __init__(
        self,
        refresh_token: str,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        login_url: Optional[str] = None,
        timeout_ms: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        settings = get_settings()
        self.refresh_token = refresh_token
        self.client_id = client_id or settings.sso_client_id
        self.client_secret = client_secret or settings.sso_client_secret
        self.login_url = login_url or settings.login_url
        self.timeout_ms = timeout_ms or settings.timeout_ms
        self._transport = transport

        self.access_token: Optional[str] = None
        self.expires_at: float = 0.0

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.login_url,
            timeout=httpx.Timeout(self.timeout_ms / 1000.0),
            transport=self._transport,
        )

    @property
    def is_expired(self) -> bool:
        return self.access_token is None or time.time() >= self.expires_at

    async def get_access_token(self) -> str:
        """Return the cached token, refreshing it first if it has expired."""
        if self.is_expired:
            return await self.refresh()
        return self.access_token  # type: ignore[return-value]

    async def refresh(self) -> str:
        """
        Exchange the refresh token for a new access token.

        Raises:
            AuthError: Missing client credentials or rejected refresh token
            TransportError: SSO server unreachable
        """
        if not self.client_id or not self.client_secret:
            raise AuthError("SSO client ID and secret are required to refresh tokens")

        body = await self._request(
            "POST",
            "oauth/token/",
            auth=(self.client_id, self.client_secret),
            json={"grant_type": "refresh_token", "refresh_token": self.refresh_token},
        )

        token = body.get("access_token")
        if not token:
            raise AuthError("SSO response did not include an access token")

        self.access_token = token
        expires_in = int(body.get("expires_in", 0) or 0)
        self.expires_at = time.time() + max(0, expires_in - EXPIRY_MARGIN_SECONDS)
        # SSO may rotate the refresh token
        self.refresh_token = body.get("refresh_token") or self.refresh_token

        logger.info("Refreshed SSO access token (expires in %ds)", expires_in)
        return token

    async def verify(self) -> dict[str, Any]:
        """Return the SSO's description of the current token's owner."""
        token = await self.get_access_token()
        return await self._request(
            "GET", "oauth/verify", headers={"Authorization": f"Bearer {token}"}
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            async with self._http() as http:
                response = await http.request(method, path, **kwargs)
        except httpx.RequestError as e:
            raise TransportError(f"SSO request failed: {e}", endpoint=path) from e

        if 400 <= response.status_code < 500:
            raise AuthError(
                f"SSO rejected request: {response.text or response.reason_phrase}",
                status_code=response.status_code,
            )
        if not response.is_success:
            raise TransportError(
                f"SSO error: {response.reason_phrase}",
                status_code=response.status_code,
                endpoint=path,
            )

        try:
            return response.json()
        except json.JSONDecodeError as e:
            raise TransportError(f"Invalid SSO response: {e}", endpoint=path) from e
