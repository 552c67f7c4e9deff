"""
OAuth 2.0 client for the authorization-code and refresh-token grants.

Talks to the provider's token endpoint over httpx. Every failure leaves this
module as a pipeline error (``TokenExchangeFailed`` for the code exchange,
``RefreshRejected`` or ``ProviderUnavailable`` for refresh).
"""
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional
from urllib.parse import urlencode

import httpx

from seo_sync.config import get_settings
from seo_sync.errors import ProviderUnavailable, RefreshRejected, TokenExchangeFailed
from seo_sync.providers import ProviderConfig
from seo_sync.utils.helpers import utcnow
from seo_sync.utils.logger import log

# Google omits expires_in on some grants; access tokens live an hour
DEFAULT_EXPIRES_IN = 3600


@dataclass
class TokenGrant:
    """Tokens returned by a successful code exchange or refresh"""
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    token_type: str = "Bearer"
    scopes: List[str] = field(default_factory=list)


class OAuthClient:
    """
    OAuth client for the registered Google providers.

    Example Usage:
        client = OAuthClient()
        url = client.get_authorization_url(get_provider_config("gsc"), state)
        grant = await client.exchange_code(config, code)
        email = await client.get_account_email(config, grant.access_token)
    """

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        settings = get_settings()
        self.client_id = client_id or settings.google_client_id
        self.client_secret = client_secret or settings.google_client_secret
        self.redirect_uri = redirect_uri or settings.google_redirect_uri
        self.timeout = timeout or settings.provider_request_timeout
        self._http_client = http_client
        self._clock = clock

        if not self.client_id or not self.client_secret:
            log.warning(
                "Google OAuth not configured. Set GOOGLE_CLIENT_ID and "
                "GOOGLE_CLIENT_SECRET in environment variables."
            )

    @asynccontextmanager
    async def _client(self):
        if self._http_client is not None:
            yield self._http_client
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                yield client

    def get_authorization_url(self, config: ProviderConfig, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(config.scopes),
            "state": state,
        }
        params.update(config.extra_auth_params)
        return f"{config.authorization_url}?{urlencode(params)}"

    async def exchange_code(self, config: ProviderConfig, code: str) -> TokenGrant:
        """
        Exchange an authorization code for tokens.

        Raises:
            TokenExchangeFailed: network error, non-2xx answer or a body
                without an access token.
        """
        data = {
            "code": code,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "redirect_uri": self.redirect_uri,
            "grant_type": "authorization_code",
        }

        try:
            async with self._client() as client:
                response = await client.post(
                    config.token_url,
                    data=data,
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
        except httpx.HTTPError as e:
            log.error(f"{config.provider.value} token exchange request failed: {type(e).__name__}")
            raise TokenExchangeFailed(f"Token endpoint unreachable: {type(e).__name__}")

        if not response.is_success:
            log.error(
                f"{config.provider.value} token exchange failed: "
                f"HTTP {response.status_code} {_error_code(response)}"
            )
            raise TokenExchangeFailed(f"Token endpoint answered {response.status_code}")

        grant = self._parse_grant(response)
        if grant is None:
            raise TokenExchangeFailed("Token response was malformed or had no access_token")

        log.info(
            f"{config.provider.value} token exchange ok "
            f"(refresh_token={'yes' if grant.refresh_token else 'no'})"
        )
        return grant

    async def refresh(self, config: ProviderConfig, refresh_token: str) -> TokenGrant:
        """
        Obtain a fresh access token.

        Raises:
            RefreshRejected: the provider refused the refresh token
                (invalid_grant, revoked consent). Not retryable.
            ProviderUnavailable: network error or 5xx from the token endpoint.
        """
        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }

        try:
            async with self._client() as client:
                response = await client.post(
                    config.token_url,
                    data=data,
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
        except httpx.HTTPError as e:
            raise ProviderUnavailable(f"Token endpoint unreachable: {type(e).__name__}")

        if response.status_code >= 500:
            raise ProviderUnavailable(f"Token endpoint answered {response.status_code}")

        if not response.is_success:
            error = _error_code(response)
            log.warning(f"{config.provider.value} refresh rejected: HTTP {response.status_code} {error}")
            raise RefreshRejected(f"Refresh rejected: {error or response.status_code}")

        grant = self._parse_grant(response)
        if grant is None:
            raise RefreshRejected("Refresh response was malformed or had no access_token")
        return grant

    async def get_account_email(self, config: ProviderConfig, access_token: str) -> Optional[str]:
        """Best-effort lookup of the authorizing account's email (display only)"""
        if not config.userinfo_url:
            return None

        try:
            async with self._client() as client:
                response = await client.get(
                    config.userinfo_url,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.HTTPError as e:
            log.warning(f"Userinfo request failed: {type(e).__name__}")
            return None

        if not response.is_success:
            log.warning(f"Userinfo returned HTTP {response.status_code}")
            return None

        try:
            body = response.json()
        except ValueError:
            return None
        email = body.get("email") if isinstance(body, dict) else None
        return email if isinstance(email, str) else None

    def _parse_grant(self, response: httpx.Response) -> Optional[TokenGrant]:
        """The grant in a token response, or None when the body is unusable"""
        try:
            body = response.json()
        except ValueError:
            return None
        if not isinstance(body, dict) or not body.get("access_token"):
            return None

        scope = body.get("scope") or ""
        if not isinstance(scope, str):
            return None
        try:
            expires_in = int(body.get("expires_in") or DEFAULT_EXPIRES_IN)
            expires_at = self._clock() + timedelta(seconds=expires_in)
        except (TypeError, ValueError, OverflowError):
            return None

        return TokenGrant(
            access_token=str(body["access_token"]),
            refresh_token=body.get("refresh_token"),
            expires_at=expires_at,
            token_type=body.get("token_type") or "Bearer",
            scopes=scope.split(),
        )


def _error_code(response: httpx.Response) -> str:
    """The OAuth 'error' field, never the token-bearing body"""
    try:
        body = response.json()
    except ValueError:
        return ""
    if isinstance(body, dict):
        return str(body.get("error") or "")
    return ""
