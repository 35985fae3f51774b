"""
Tests for credential providers.
"""

from __future__ import annotations

import pytest

from evesync.core.auth import (
    CredentialProvider,
    SSOCredentialProvider,
    StaticCredentialProvider,
)
from evesync.core.errors import AuthError, TransportError

LOGIN_URL = "https://login.example.test/"


def _provider(**kwargs) -> SSOCredentialProvider:
    return SSOCredentialProvider(
        refresh_token=kwargs.pop("refresh_token", "refresh-1"),
        client_id="client",
        client_secret="secret",
        login_url=LOGIN_URL,
        **kwargs,
    )


class TestStaticCredentialProvider:
    @pytest.mark.asyncio
    async def test_returns_fixed_token(self):
        provider = StaticCredentialProvider("tok")
        assert await provider.get_access_token() == "tok"
        assert await provider.refresh() == "tok"

    def test_satisfies_protocol(self):
        assert isinstance(StaticCredentialProvider("tok"), CredentialProvider)
        assert isinstance(_provider(), CredentialProvider)


class TestSSOCredentialProvider:
    @pytest.mark.asyncio
    async def test_refresh_posts_refresh_token_grant(self, httpx_mock):
        httpx_mock.add_response(
            method="POST",
            url=f"{LOGIN_URL}oauth/token/",
            json={"access_token": "access-1", "expires_in": 1200},
        )

        provider = _provider()
        token = await provider.get_access_token()

        assert token == "access-1"
        request = httpx_mock.get_request()
        assert request.headers["Authorization"].startswith("Basic ")
        assert b'"grant_type":"refresh_token"' in request.content.replace(b" ", b"")

    @pytest.mark.asyncio
    async def test_token_is_cached_until_expiry(self, httpx_mock):
        httpx_mock.add_response(json={"access_token": "access-1", "expires_in": 1200})

        provider = _provider()
        await provider.get_access_token()
        await provider.get_access_token()

        assert len(httpx_mock.get_requests()) == 1

    @pytest.mark.asyncio
    async def test_refresh_forces_new_token(self, httpx_mock):
        httpx_mock.add_response(json={"access_token": "access-1", "expires_in": 1200})
        httpx_mock.add_response(
            json={"access_token": "access-2", "expires_in": 1200, "refresh_token": "refresh-2"}
        )

        provider = _provider()
        await provider.get_access_token()
        assert await provider.refresh() == "access-2"
        assert provider.refresh_token == "refresh-2"

    @pytest.mark.asyncio
    async def test_rejected_refresh_raises_auth_error(self, httpx_mock):
        httpx_mock.add_response(status_code=400, json={"error": "invalid_grant"})

        with pytest.raises(AuthError) as exc_info:
            await _provider().refresh()

        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_server_error_raises_transport_error(self, httpx_mock):
        httpx_mock.add_response(status_code=502)

        with pytest.raises(TransportError):
            await _provider().refresh()

    @pytest.mark.asyncio
    async def test_missing_client_credentials(self):
        provider = SSOCredentialProvider(refresh_token="r", login_url=LOGIN_URL)
        with pytest.raises(AuthError, match="client ID"):
            await provider.refresh()

    @pytest.mark.asyncio
    async def test_verify_uses_bearer_token(self, httpx_mock):
        httpx_mock.add_response(
            method="POST", url=f"{LOGIN_URL}oauth/token/", json={"access_token": "access-1", "expires_in": 1200}
        )
        httpx_mock.add_response(
            method="GET", url=f"{LOGIN_URL}oauth/verify", json={"CharacterID": 101}
        )

        result = await _provider().verify()

        assert result == {"CharacterID": 101}
        verify_request = httpx_mock.get_requests()[-1]
        assert verify_request.headers["Authorization"] == "Bearer access-1"
