"""
Token refresher

Guarantees a usable access token before any provider call. A refreshed token
is persisted before it is handed back, so a crash mid-sync never leaves the
store holding an already-replaced token.
"""
from datetime import datetime, timedelta
from typing import Callable, Optional

from seo_sync.config import get_settings
from seo_sync.connectors.oauth_client import OAuthClient
from seo_sync.errors import CredentialExpiredNoRefresh
from seo_sync.models.credential import OAuthCredential
from seo_sync.providers import get_provider_config
from seo_sync.services.credential_store import CredentialStore
from seo_sync.utils.helpers import utcnow
from seo_sync.utils.logger import log


class TokenRefresher:
    def __init__(
        self,
        store: CredentialStore,
        oauth_client: OAuthClient,
        skew: Optional[timedelta] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.oauth_client = oauth_client
        if skew is None:
            skew = timedelta(seconds=get_settings().token_refresh_skew_seconds)
        self.skew = skew
        self.clock = clock

    async def ensure_valid(self, credential: OAuthCredential) -> OAuthCredential:
        """
        Return a credential whose access token is good for at least ``skew``.

        Raises:
            CredentialExpiredNoRefresh: expired and no refresh token stored
            RefreshRejected: provider refused the refresh token
            ProviderUnavailable: token endpoint unreachable
        """
        if not credential.needs_refresh(self.clock(), self.skew):
            return credential

        if not credential.refresh_token:
            log.warning(
                f"{credential.provider} credential for project {credential.project_id} "
                f"expired and has no refresh token"
            )
            raise CredentialExpiredNoRefresh("Access token expired; re-authorize the integration")

        config = get_provider_config(credential.provider)
        grant = await self.oauth_client.refresh(config, credential.refresh_token)
        refreshed = self.store.update_tokens(credential, grant)

        log.info(
            f"Refreshed {credential.provider} token for project {credential.project_id} "
            f"(expires {refreshed.expires_at})"
        )
        return refreshed
