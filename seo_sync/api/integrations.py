"""
Integration endpoints: OAuth connect/callback, manual sync, status, disconnect
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel, ConfigDict, Field

from seo_sync.config import get_settings
from seo_sync.connectors.oauth_client import OAuthClient
from seo_sync.errors import (
    IntegrationError,
    InvalidSyncRequest,
    NoCredential,
    NoResourceBound,
    ProviderRateLimited,
    ProviderRequestRejected,
    ProviderUnavailable,
    ReauthorizationRequired,
    StorageError,
    SyncInProgress,
    SyncTimedOut,
    UnsupportedProvider,
)
from seo_sync.providers import PROVIDER_CONFIGS, Provider, get_provider_config
from seo_sync.services.binding_store import ResourceBindingStore
from seo_sync.services.credential_store import CredentialStore
from seo_sync.services.factory import build_callback_handler, build_orchestrator, get_oauth_client
from seo_sync.services.oauth_callback import OAuthCallbackHandler, build_status_url, fallback_provider
from seo_sync.services.state_codec import FlowState, encode_state
from seo_sync.services.sync_orchestrator import SyncOrchestrator
from seo_sync.services.sync_run_log import SyncRunLog
from seo_sync.utils.logger import log

settings = get_settings()

router = APIRouter(prefix="/integrations", tags=["integrations"])

# Most specific class first
ERROR_STATUS = (
    (InvalidSyncRequest, 400),
    (UnsupportedProvider, 400),
    (ReauthorizationRequired, 401),
    (NoResourceBound, 404),
    (NoCredential, 404),
    (SyncInProgress, 409),
    (ProviderRateLimited, 429),
    (StorageError, 500),
    (ProviderUnavailable, 502),
    (ProviderRequestRejected, 502),
    (SyncTimedOut, 504),
)


def error_status(error: IntegrationError) -> int:
    for error_class, status in ERROR_STATUS:
        if isinstance(error, error_class):
            return status
    return 500


def error_response(error: IntegrationError) -> JSONResponse:
    return JSONResponse(
        status_code=error_status(error),
        content={
            "success": False,
            "error": error.code,
            "message": error.message,
            "rowsSynced": getattr(error, "rows_synced", 0),
        },
    )


# Dependencies (overridden in tests)

def get_credential_store() -> CredentialStore:
    return CredentialStore()


def get_binding_store() -> ResourceBindingStore:
    return ResourceBindingStore()


def get_sync_run_log() -> SyncRunLog:
    return SyncRunLog()


def get_callback_handler() -> OAuthCallbackHandler:
    return build_callback_handler()


def get_orchestrator() -> SyncOrchestrator:
    return build_orchestrator()


def get_oauth() -> OAuthClient:
    return get_oauth_client()


class SyncRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project_id: int = Field(alias="projectId")
    resource_id: Optional[str] = Field(default=None, alias="resourceId")
    days: Optional[int] = None


@router.get("/status")
async def integration_status(
    project_id: int = Query(..., alias="projectId"),
    credentials: CredentialStore = Depends(get_credential_store),
    bindings: ResourceBindingStore = Depends(get_binding_store),
    run_log: SyncRunLog = Depends(get_sync_run_log),
):
    """Connection and last-sync state per provider for one project"""
    connected = {Provider.parse(c.provider): c for c in credentials.list_for_project(project_id)}

    data = {}
    for provider in Provider:
        if provider not in PROVIDER_CONFIGS:
            data[provider.value] = {"connected": False, "available": False}
            continue

        credential = connected.get(provider)
        last_run = run_log.latest(project_id, provider)
        data[provider.value] = {
            "connected": credential is not None,
            "available": True,
            "accountEmail": credential.account_email if credential else None,
            "expiresAt": credential.expires_at.isoformat() if credential and credential.expires_at else None,
            "scopes": list(credential.scopes or []) if credential else [],
            "canRefresh": bool(credential and credential.refresh_token),
            "resources": [b.resource_id for b in bindings.list(project_id, provider)],
            "lastSync": {
                "status": last_run.status,
                "rowsSynced": last_run.rows_synced,
                "error": last_run.error_code,
                "startedAt": last_run.started_at.isoformat(),
                "completedAt": last_run.completed_at.isoformat() if last_run.completed_at else None,
            } if last_run else None,
        }

    return {"success": True, "data": data}


@router.get("/{provider}/authorize")
async def authorize(
    provider: str,
    project_id: int = Query(..., alias="projectId"),
    oauth_client: OAuthClient = Depends(get_oauth),
):
    """
    Start an OAuth flow.

    Returns the consent URL and sets a short-lived cookie holding the flow
    nonce; the callback only accepts a state carrying the same nonce.
    """
    try:
        config = get_provider_config(provider)
    except UnsupportedProvider as e:
        return error_response(e)

    flow = FlowState(provider=config.provider, project_id=project_id)
    state = encode_state(flow)
    auth_url = oauth_client.get_authorization_url(config, state)

    response = JSONResponse({"success": True, "data": {"authUrl": auth_url, "state": state}})
    response.set_cookie(
        settings.oauth_state_cookie_name,
        flow.nonce,
        max_age=settings.oauth_state_cookie_max_age,
        httponly=True,
        samesite="lax",
        secure=settings.environment == "production",
    )
    log.info(f"Issued {config.provider.value} authorization URL for project {project_id}")
    return response


@router.get("/{provider}/callback")
async def oauth_callback(
    provider: str,
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    handler: OAuthCallbackHandler = Depends(get_callback_handler),
):
    """Provider redirect target; always answers with a redirect to the integrations page"""
    expected_nonce = None
    if settings.oauth_enforce_state_binding:
        expected_nonce = request.cookies.get(settings.oauth_state_cookie_name, "")

    try:
        result = await handler.handle(provider, code, state, error, expected_nonce=expected_nonce)
        redirect_url = result.redirect_url
    except Exception as e:
        log.error(f"OAuth callback failed unexpectedly: {type(e).__name__}: {e}")
        redirect_url = build_status_url(fallback_provider(provider), False, "internal_error")

    response = RedirectResponse(redirect_url, status_code=307)
    response.delete_cookie(settings.oauth_state_cookie_name)
    return response


@router.post("/{provider}/sync")
async def sync_integration(
    provider: str,
    body: SyncRequest,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
):
    """Run a sync now and report how many rows were written"""
    try:
        outcome = await orchestrator.run_sync(
            body.project_id,
            provider,
            days=body.days,
            resource_id=body.resource_id,
            timeout=settings.sync_request_timeout,
        )
    except IntegrationError as e:
        return error_response(e)

    return {
        "success": True,
        "message": f"Synced {outcome.rows_synced} rows",
        "rowsSynced": outcome.rows_synced,
        "dateRange": outcome.date_range,
    }


@router.delete("/{provider}/disconnect")
async def disconnect(
    provider: str,
    project_id: int = Query(..., alias="projectId"),
    credentials: CredentialStore = Depends(get_credential_store),
):
    """Forget the project's stored credential for a provider"""
    try:
        provider_enum = Provider.parse(provider)
        deleted = credentials.delete(project_id, provider_enum)
    except IntegrationError as e:
        return error_response(e)

    if not deleted:
        return error_response(NoCredential(f"Project {project_id} has no {provider_enum.value} credential"))

    log.info(f"Disconnected {provider_enum.value} for project {project_id}")
    return {"success": True, "message": f"{provider_enum.value} disconnected"}
