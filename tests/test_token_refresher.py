"""
Tests for skew-based token refresh.
"""
import asyncio
from datetime import timedelta

import pytest

from seo_sync.connectors.oauth_client import TokenGrant
from seo_sync.errors import CredentialExpiredNoRefresh, NoCredential, RefreshRejected
from seo_sync.providers import Provider
from seo_sync.services.token_refresher import TokenRefresher

from fakes import FIXED_NOW, FakeOAuthClient

SKEW = timedelta(minutes=5)


def _refresher(credential_store, oauth_client):
    return TokenRefresher(credential_store, oauth_client, skew=SKEW, clock=lambda: FIXED_NOW)


def _store(credential_store, expires_in: timedelta, refresh_token="refresh-1"):
    return credential_store.put(
        27,
        "gsc",
        TokenGrant(
            access_token="access-1",
            refresh_token=refresh_token,
            expires_at=FIXED_NOW + expires_in,
        ),
    )


def test_valid_token_is_returned_unchanged(credential_store):
    credential = _store(credential_store, timedelta(minutes=30))
    oauth = FakeOAuthClient()

    result = asyncio.run(_refresher(credential_store, oauth).ensure_valid(credential))

    assert result is credential
    assert oauth.refresh_calls == []


def test_token_inside_skew_is_refreshed_once_and_persisted(credential_store):
    credential = _store(credential_store, timedelta(minutes=4))
    oauth = FakeOAuthClient(refresh_grant=TokenGrant(
        access_token="access-2",
        expires_at=FIXED_NOW + timedelta(hours=1),
    ))

    result = asyncio.run(_refresher(credential_store, oauth).ensure_valid(credential))

    assert oauth.refresh_calls == [(Provider.GSC, "refresh-1")]
    assert result.access_token == "access-2"
    assert result.expires_at == FIXED_NOW + timedelta(hours=1)

    stored = credential_store.get(27, "gsc")
    assert stored.access_token == "access-2"
    # Not rotated, so the original refresh token stays
    assert stored.refresh_token == "refresh-1"


def test_rotated_refresh_token_is_stored(credential_store):
    credential = _store(credential_store, timedelta(minutes=-10))
    oauth = FakeOAuthClient(refresh_grant=TokenGrant(
        access_token="access-2",
        refresh_token="refresh-2",
        expires_at=FIXED_NOW + timedelta(hours=1),
    ))

    asyncio.run(_refresher(credential_store, oauth).ensure_valid(credential))

    assert credential_store.get(27, "gsc").refresh_token == "refresh-2"


def test_unknown_expiry_counts_as_expired(credential_store):
    credential = credential_store.put(27, "gsc", TokenGrant(access_token="a", refresh_token="r"))
    oauth = FakeOAuthClient(refresh_grant=TokenGrant(access_token="b", expires_at=FIXED_NOW + timedelta(hours=1)))

    result = asyncio.run(_refresher(credential_store, oauth).ensure_valid(credential))

    assert len(oauth.refresh_calls) == 1
    assert result.access_token == "b"


def test_expired_without_refresh_token_needs_reauthorization(credential_store):
    credential = _store(credential_store, timedelta(minutes=-1), refresh_token=None)
    oauth = FakeOAuthClient()

    with pytest.raises(CredentialExpiredNoRefresh):
        asyncio.run(_refresher(credential_store, oauth).ensure_valid(credential))

    assert oauth.refresh_calls == []


def test_rejected_refresh_leaves_store_untouched(credential_store):
    credential = _store(credential_store, timedelta(minutes=-1))
    oauth = FakeOAuthClient(refresh_error=RefreshRejected("invalid_grant"))

    with pytest.raises(RefreshRejected):
        asyncio.run(_refresher(credential_store, oauth).ensure_valid(credential))

    assert credential_store.get(27, "gsc").access_token == "access-1"


def test_refresh_after_disconnect_does_not_restore_credential(credential_store):
    credential = _store(credential_store, timedelta(minutes=-1))
    credential_store.delete(27, "gsc")
    oauth = FakeOAuthClient(refresh_grant=TokenGrant(access_token="access-2", expires_at=FIXED_NOW + timedelta(hours=1)))

    with pytest.raises(NoCredential):
        asyncio.run(_refresher(credential_store, oauth).ensure_valid(credential))

    assert len(oauth.refresh_calls) == 1
    assert credential_store.get(27, "gsc") is None
