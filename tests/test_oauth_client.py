"""
Tests for the OAuth token endpoint client against a mocked transport.
"""
import asyncio
from datetime import timedelta
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from seo_sync.connectors.oauth_client import OAuthClient
from seo_sync.errors import ProviderUnavailable, RefreshRejected, TokenExchangeFailed
from seo_sync.providers import GOOGLE_TOKEN_URL, get_provider_config

from fakes import FIXED_NOW

GSC = get_provider_config("gsc")


def _call(handler, method, *args):
    """Run one OAuthClient coroutine against a MockTransport handler"""
    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = OAuthClient(
                client_id="client-id",
                client_secret="client-secret",
                redirect_uri="https://app.example.com/callback",
                http_client=http,
                clock=lambda: FIXED_NOW,
            )
            return await getattr(client, method)(*args)
    return asyncio.run(run())


def test_authorization_url_requests_offline_access():
    client = OAuthClient(client_id="client-id", client_secret="secret", redirect_uri="https://app/cb")
    url = client.get_authorization_url(GSC, "state-token")

    params = parse_qs(urlparse(url).query)
    assert params["state"] == ["state-token"]
    assert params["access_type"] == ["offline"]
    assert params["prompt"] == ["consent"]
    assert "https://www.googleapis.com/auth/webmasters.readonly" in params["scope"][0].split()


def test_exchange_code_parses_grant():
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        seen["body"] = parse_qs(request.content.decode())
        return httpx.Response(200, json={
            "access_token": "ya29.token",
            "refresh_token": "1//refresh",
            "expires_in": 3599,
            "token_type": "Bearer",
            "scope": "openid https://www.googleapis.com/auth/webmasters.readonly",
        })

    grant = _call(handler, "exchange_code", GSC, "auth-code")

    assert seen["url"] == GOOGLE_TOKEN_URL
    assert seen["body"]["grant_type"] == ["authorization_code"]
    assert seen["body"]["code"] == ["auth-code"]
    assert grant.access_token == "ya29.token"
    assert grant.refresh_token == "1//refresh"
    assert grant.expires_at == FIXED_NOW + timedelta(seconds=3599)
    assert grant.scopes == ["openid", "https://www.googleapis.com/auth/webmasters.readonly"]


def test_exchange_without_refresh_token_is_still_a_grant():
    grant = _call(
        lambda request: httpx.Response(200, json={"access_token": "a"}),
        "exchange_code", GSC, "code",
    )
    assert grant.refresh_token is None
    assert grant.expires_at == FIXED_NOW + timedelta(hours=1)


@pytest.mark.parametrize("response", [
    httpx.Response(400, json={"error": "invalid_grant"}),
    httpx.Response(200, json={"token_type": "Bearer"}),
    httpx.Response(200, text="<html>"),
    httpx.Response(200, json={"access_token": "a", "expires_in": "soon"}),
    httpx.Response(200, json={"access_token": "a", "scope": ["not", "a", "string"]}),
    httpx.Response(200, json=["access_token"]),
])
def test_exchange_failures(response):
    with pytest.raises(TokenExchangeFailed):
        _call(lambda request: response, "exchange_code", GSC, "code")


def test_exchange_network_error():
    def handler(request):
        raise httpx.ConnectError("boom", request=request)

    with pytest.raises(TokenExchangeFailed):
        _call(handler, "exchange_code", GSC, "code")


def test_refresh_invalid_grant_is_rejected():
    with pytest.raises(RefreshRejected):
        _call(
            lambda request: httpx.Response(400, json={"error": "invalid_grant"}),
            "refresh", GSC, "1//refresh",
        )


def test_refresh_server_error_is_unavailable():
    with pytest.raises(ProviderUnavailable):
        _call(lambda request: httpx.Response(503), "refresh", GSC, "1//refresh")


def test_refresh_network_error_is_unavailable():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(ProviderUnavailable):
        _call(handler, "refresh", GSC, "1//refresh")


def test_refresh_sends_refresh_token_grant():
    seen = {}

    def handler(request):
        seen["body"] = parse_qs(request.content.decode())
        return httpx.Response(200, json={"access_token": "new", "expires_in": 60})

    grant = _call(handler, "refresh", GSC, "1//refresh")

    assert seen["body"]["grant_type"] == ["refresh_token"]
    assert seen["body"]["refresh_token"] == ["1//refresh"]
    assert grant.access_token == "new"
    assert grant.expires_at == FIXED_NOW + timedelta(seconds=60)


def test_account_email_is_best_effort():
    ok = _call(
        lambda request: httpx.Response(200, json={"email": "owner@example.com"}),
        "get_account_email", GSC, "token",
    )
    denied = _call(lambda request: httpx.Response(401), "get_account_email", GSC, "token")

    assert ok == "owner@example.com"
    assert denied is None


def test_any_2xx_token_response_is_accepted():
    grant = _call(
        lambda request: httpx.Response(201, json={"access_token": "a", "expires_in": 60}),
        "exchange_code", GSC, "code",
    )
    assert grant.access_token == "a"


def test_refresh_with_unreadable_expiry_is_rejected():
    with pytest.raises(RefreshRejected):
        _call(
            lambda request: httpx.Response(200, json={"access_token": "new", "expires_in": "soon"}),
            "refresh", GSC, "1//refresh",
        )


def test_account_email_ignores_unexpected_body():
    email = _call(lambda request: httpx.Response(200, json=["owner@example.com"]), "get_account_email", GSC, "token")
    assert email is None
