"""Database models for the SEO integrations sync service"""

from seo_sync.models.credential import OAuthCredential

from seo_sync.models.bindings import (
    GscSite,
    Ga4Property
)

from seo_sync.models.metrics import (
    GscData,
    Ga4Data
)

from seo_sync.models.sync_run import SyncRun
