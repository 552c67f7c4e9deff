"""
Wiring for the integration services.

The API dependencies, the scheduler and the scripts all build their services
here so they share one OAuth client and one set of sync locks per process.
"""
from functools import lru_cache
from typing import Callable

from sqlalchemy.orm import Session

from seo_sync.config import get_settings
from seo_sync.connectors.ga4_connector import GA4Connector
from seo_sync.connectors.oauth_client import OAuthClient
from seo_sync.connectors.search_console_connector import SearchConsoleConnector
from seo_sync.models.base import SessionLocal
from seo_sync.providers import Provider
from seo_sync.services.binding_store import ResourceBindingStore
from seo_sync.services.credential_store import CredentialStore
from seo_sync.services.oauth_callback import OAuthCallbackHandler
from seo_sync.services.sync_orchestrator import SyncLocks, SyncOrchestrator
from seo_sync.services.sync_run_log import SyncRunLog
from seo_sync.services.token_refresher import TokenRefresher
from seo_sync.services.upsert_service import UpsertLayer


@lru_cache()
def get_oauth_client() -> OAuthClient:
    return OAuthClient()


@lru_cache()
def get_sync_locks() -> SyncLocks:
    return SyncLocks()


def build_sync_clients():
    return {
        Provider.GSC: SearchConsoleConnector(),
        Provider.GA4: GA4Connector(),
    }


def build_callback_handler(session_factory: Callable[[], Session] = SessionLocal) -> OAuthCallbackHandler:
    return OAuthCallbackHandler(CredentialStore(session_factory), get_oauth_client())


def build_orchestrator(session_factory: Callable[[], Session] = SessionLocal) -> SyncOrchestrator:
    settings = get_settings()
    credentials = CredentialStore(session_factory)
    return SyncOrchestrator(
        credentials=credentials,
        bindings=ResourceBindingStore(session_factory),
        refresher=TokenRefresher(credentials, get_oauth_client()),
        upserter=UpsertLayer(session_factory),
        clients=build_sync_clients(),
        run_log=SyncRunLog(session_factory),
        locks=get_sync_locks() if settings.sync_use_advisory_lock else None,
    )
