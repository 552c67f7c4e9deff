"""
Shared fixtures: an in-memory SQLite database per test and the stores on top.
"""
from datetime import timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from seo_sync.connectors.oauth_client import TokenGrant
from seo_sync.models.base import init_db
from seo_sync.services.binding_store import ResourceBindingStore
from seo_sync.services.credential_store import CredentialStore
from seo_sync.services.sync_run_log import SyncRunLog

from fakes import FIXED_NOW


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def credential_store(session_factory):
    return CredentialStore(session_factory)


@pytest.fixture
def binding_store(session_factory):
    return ResourceBindingStore(session_factory)


@pytest.fixture
def run_log(session_factory):
    return SyncRunLog(session_factory)


@pytest.fixture
def fresh_grant():
    return TokenGrant(
        access_token="access-1",
        refresh_token="refresh-1",
        expires_at=FIXED_NOW + timedelta(hours=1),
        scopes=["https://www.googleapis.com/auth/webmasters.readonly"],
    )
