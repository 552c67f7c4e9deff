"""
Error taxonomy for the OAuth and sync pipeline.

Every provider, network and storage failure is converted into one of these
at the component boundary. Each class carries a stable ``code`` that the API
layer reports to callers and the status page.
"""
from typing import Optional


class IntegrationError(Exception):
    """Base class for all pipeline errors"""

    code = "integration_error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.code)
        self.message = message or self.code


class MalformedState(IntegrationError):
    """Redirect state could not be decoded into a flow state"""

    code = "malformed_state"


class TokenExchangeFailed(IntegrationError):
    """Provider token endpoint rejected the authorization code"""

    code = "token_exchange_failed"


class UnsupportedProvider(IntegrationError):
    """Provider is not in the registered set (or has no sync client yet)"""

    code = "unsupported_provider"


class SyncError(IntegrationError):
    """
    Failure during a sync run.

    ``rows_synced`` is the number of rows committed before the failure, so
    callers can tell "sync failed after partial progress" apart from
    "sync failed before writing anything".
    """

    code = "sync_error"

    def __init__(self, message: Optional[str] = None, rows_synced: int = 0):
        super().__init__(message)
        self.rows_synced = rows_synced


# Configuration errors

class NoResourceBound(SyncError):
    code = "no_resource_bound"


class NoCredential(SyncError):
    code = "no_credential"


# Authorization errors (caller must re-authorize, never retried)

class ReauthorizationRequired(SyncError):
    code = "reauthorization_required"


class CredentialExpiredNoRefresh(ReauthorizationRequired):
    code = "credential_expired_no_refresh"


class RefreshRejected(ReauthorizationRequired):
    code = "refresh_rejected"


class ProviderAuthorizationFailed(ReauthorizationRequired):
    code = "provider_authorization_failed"


# Provider data errors (retried locally first)

class ProviderRateLimited(SyncError):
    code = "provider_rate_limited"


class ProviderUnavailable(SyncError):
    code = "provider_unavailable"


# Run control

class SyncTimedOut(SyncError):
    code = "sync_timed_out"


class SyncInProgress(SyncError):
    code = "sync_in_progress"


class ProviderRequestRejected(SyncError):
    """Provider refused the query itself (bad site url, unknown property)"""

    code = "provider_request_rejected"


class InvalidSyncRequest(SyncError):
    code = "invalid_request"


class StorageError(SyncError):
    """Metric or credential write failed; the batch was rolled back"""

    code = "storage_error"
