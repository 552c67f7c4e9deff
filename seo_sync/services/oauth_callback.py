"""
OAuth callback handling.

Turns the provider's redirect back to us into either a stored credential or a
structured failure, and always into a redirect to the integrations page:
``{status_url}?{integration}=success`` or ``...=error&error=<code>``.
Tokens and raw provider errors never appear in the redirect.
"""
import hmac
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

from seo_sync.config import get_settings
from seo_sync.connectors.oauth_client import OAuthClient
from seo_sync.errors import (
    IntegrationError,
    MalformedState,
    TokenExchangeFailed,
    UnsupportedProvider,
)
from seo_sync.providers import Provider, get_provider_config
from seo_sync.services.credential_store import CredentialStore
from seo_sync.services.state_codec import DEFAULT_PROVIDER, FlowState, decode_state
from seo_sync.utils.logger import log

STATE_MISMATCH = "state_mismatch"
MISSING_CODE = "missing_code"


def sanitize_error(value: Optional[str]) -> str:
    """Reduce a provider error string to a short code safe for a URL"""
    cleaned = re.sub(r"[^A-Za-z0-9_.\-]", "", value or "")[:64]
    return cleaned or "unknown_error"


def build_status_url(provider: Provider, success: bool, error: Optional[str] = None) -> str:
    settings = get_settings()
    params = {provider.value: "success" if success else "error"}
    if not success:
        params["error"] = error or "unknown_error"
    base = settings.frontend_url.rstrip("/") + settings.integrations_status_path
    return f"{base}?{urlencode(params)}"


@dataclass(frozen=True)
class CallbackResult:
    provider: Provider
    success: bool
    redirect_url: str
    project_id: Optional[int] = None
    error: Optional[str] = None


class OAuthCallbackHandler:
    def __init__(self, store: CredentialStore, oauth_client: OAuthClient):
        self.store = store
        self.oauth_client = oauth_client

    async def handle(
        self,
        route_provider: Optional[str],
        code: Optional[str],
        state: Optional[str],
        error: Optional[str] = None,
        expected_nonce: Optional[str] = None,
    ) -> CallbackResult:
        """
        Process one callback.

        ``expected_nonce`` is the nonce issued to this browser when the flow
        started. When given, a decoded state carrying any other nonce is
        refused before the code is exchanged.
        """
        flow: Optional[FlowState] = None
        try:
            flow = decode_state(state)
        except MalformedState as e:
            log.warning(f"OAuth callback with malformed state: {e.message}")

        provider = flow.provider if flow else fallback_provider(route_provider)

        if error:
            log.warning(f"{provider.value} authorization denied or failed: {sanitize_error(error)}")
            return self._fail(provider, sanitize_error(error), flow)

        if flow is not None and expected_nonce is not None:
            # An empty nonce on either side never matches
            if not (
                expected_nonce
                and flow.nonce
                and hmac.compare_digest(flow.nonce.encode(), expected_nonce.encode())
            ):
                log.warning(f"{provider.value} callback state does not belong to this session")
                return self._fail(provider, STATE_MISMATCH, flow)

        if not code:
            return self._fail(provider, MISSING_CODE, flow)

        try:
            config = get_provider_config(provider)
        except UnsupportedProvider as e:
            return self._fail(provider, e.code, flow)

        try:
            grant = await self.oauth_client.exchange_code(config, code)
        except TokenExchangeFailed as e:
            return self._fail(provider, e.code, flow)

        # Without a decoded project there is nowhere safe to store the tokens
        if flow is None:
            return self._fail(provider, MalformedState.code, flow)

        account_email = await self.oauth_client.get_account_email(config, grant.access_token)

        try:
            self.store.put(flow.project_id, provider, grant, account_email)
        except IntegrationError as e:
            return self._fail(provider, e.code, flow)

        log.info(f"{provider.value} connected for project {flow.project_id}")
        return CallbackResult(
            provider=provider,
            success=True,
            redirect_url=build_status_url(provider, True),
            project_id=flow.project_id,
        )

    @staticmethod
    def _fail(provider: Provider, error: str, flow: Optional[FlowState]) -> CallbackResult:
        return CallbackResult(
            provider=provider,
            success=False,
            redirect_url=build_status_url(provider, False, error),
            project_id=flow.project_id if flow else None,
            error=error,
        )


def fallback_provider(route_provider: Optional[str]) -> Provider:
    if not route_provider:
        return DEFAULT_PROVIDER
    try:
        return Provider.parse(route_provider)
    except UnsupportedProvider:
        return DEFAULT_PROVIDER
