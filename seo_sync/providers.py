"""
Registered integration providers and their OAuth settings.

The set is closed: anything outside ``Provider`` is rejected with
``UnsupportedProvider``. Ahrefs is registered as a known provider kind but has
no OAuth application or sync client yet.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple

from seo_sync.errors import UnsupportedProvider


class Provider(str, Enum):
    GSC = "gsc"
    GA4 = "ga4"
    AHREFS = "ahrefs"

    @classmethod
    def parse(cls, value) -> "Provider":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnsupportedProvider(f"Unknown provider: {value!r}")


GOOGLE_AUTHORIZATION_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

PROFILE_SCOPES = (
    "openid",
    "https://www.googleapis.com/auth/userinfo.email",
)


@dataclass(frozen=True)
class ProviderConfig:
    """OAuth endpoints and scopes for one provider"""
    provider: Provider
    display_name: str
    authorization_url: str
    token_url: str
    scopes: Tuple[str, ...]
    userinfo_url: Optional[str] = None
    extra_auth_params: Dict[str, str] = field(default_factory=dict)


PROVIDER_CONFIGS: Dict[Provider, ProviderConfig] = {
    Provider.GSC: ProviderConfig(
        provider=Provider.GSC,
        display_name="Google Search Console",
        authorization_url=GOOGLE_AUTHORIZATION_URL,
        token_url=GOOGLE_TOKEN_URL,
        scopes=("https://www.googleapis.com/auth/webmasters.readonly",) + PROFILE_SCOPES,
        userinfo_url=GOOGLE_USERINFO_URL,
        # offline + consent so Google issues a refresh token every time
        extra_auth_params={"access_type": "offline", "prompt": "consent"},
    ),
    Provider.GA4: ProviderConfig(
        provider=Provider.GA4,
        display_name="Google Analytics 4",
        authorization_url=GOOGLE_AUTHORIZATION_URL,
        token_url=GOOGLE_TOKEN_URL,
        scopes=("https://www.googleapis.com/auth/analytics.readonly",) + PROFILE_SCOPES,
        userinfo_url=GOOGLE_USERINFO_URL,
        extra_auth_params={"access_type": "offline", "prompt": "consent"},
    ),
}


def get_provider_config(provider) -> ProviderConfig:
    provider = Provider.parse(provider)
    config = PROVIDER_CONFIGS.get(provider)
    if config is None:
        raise UnsupportedProvider(f"{provider.value} has no OAuth integration yet")
    return config
