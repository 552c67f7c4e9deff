"""
Credential store

Persists one OAuth credential per (project, provider). Instances handed back
are detached from their session so callers can hold them across awaits.
"""
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from seo_sync.connectors.oauth_client import TokenGrant
from seo_sync.errors import NoCredential, StorageError
from seo_sync.models.base import SessionLocal, dialect_insert
from seo_sync.models.credential import OAuthCredential
from seo_sync.providers import Provider
from seo_sync.utils.helpers import to_naive_utc, utcnow
from seo_sync.utils.logger import log


class CredentialStore:
    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def get(self, project_id: int, provider) -> Optional[OAuthCredential]:
        provider = Provider.parse(provider)
        db = self.session_factory()
        try:
            return self._load(db, project_id, provider)
        finally:
            db.close()

    def put(
        self,
        project_id: int,
        provider,
        grant: TokenGrant,
        account_email: Optional[str] = None,
    ) -> OAuthCredential:
        """
        Store a freshly issued credential, replacing any existing one.

        A full replace: a grant without a refresh token clears the stored one
        rather than keeping a token issued for an earlier consent.
        """
        provider = Provider.parse(provider)
        now = utcnow()
        values = {
            "project_id": project_id,
            "provider": provider.value,
            "access_token": grant.access_token,
            "refresh_token": grant.refresh_token,
            "token_type": grant.token_type or "Bearer",
            "expires_at": to_naive_utc(grant.expires_at),
            "scopes": list(grant.scopes or []),
            "account_email": account_email,
            "created_at": now,
            "updated_at": now,
        }

        db = self.session_factory()
        try:
            stmt = dialect_insert(db, OAuthCredential).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["project_id", "provider"],
                set_={
                    key: stmt.excluded[key]
                    for key in values
                    if key not in ("project_id", "provider", "created_at")
                },
            )
            db.execute(stmt)
            db.commit()
            credential = self._load(db, project_id, provider)
            log.info(f"Stored {provider.value} credential for project {project_id}")
            return credential
        except SQLAlchemyError as e:
            db.rollback()
            log.error(f"Failed to store {provider.value} credential for project {project_id}: {e}")
            raise StorageError("Could not store credential")
        finally:
            db.close()

    def update_tokens(self, credential: OAuthCredential, grant: TokenGrant) -> OAuthCredential:
        """
        Persist a refreshed access token.

        The refresh token is only replaced when the provider rotated it. Raises
        NoCredential if the credential was deleted in the meantime.
        """
        provider = Provider.parse(credential.provider)
        db = self.session_factory()
        try:
            row = (
                db.query(OAuthCredential)
                .filter(
                    OAuthCredential.project_id == credential.project_id,
                    OAuthCredential.provider == provider.value,
                )
                .first()
            )
            if row is None:
                # Disconnected while refreshing; the revocation stands
                raise NoCredential(
                    f"Project {credential.project_id} disconnected {provider.value} during token refresh"
                )

            row.access_token = grant.access_token
            row.expires_at = to_naive_utc(grant.expires_at)
            row.token_type = grant.token_type or row.token_type or "Bearer"
            if grant.refresh_token:
                row.refresh_token = grant.refresh_token
            if grant.scopes:
                row.scopes = list(grant.scopes)
            row.updated_at = utcnow()

            db.commit()
            db.refresh(row)
            db.expunge(row)
            return row
        except SQLAlchemyError as e:
            db.rollback()
            log.error(f"Failed to update tokens for project {credential.project_id}: {e}")
            raise StorageError("Could not persist refreshed token")
        finally:
            db.close()

    def delete(self, project_id: int, provider) -> bool:
        provider = Provider.parse(provider)
        db = self.session_factory()
        try:
            deleted = (
                db.query(OAuthCredential)
                .filter(
                    OAuthCredential.project_id == project_id,
                    OAuthCredential.provider == provider.value,
                )
                .delete(synchronize_session=False)
            )
            db.commit()
            return deleted > 0
        except SQLAlchemyError as e:
            db.rollback()
            log.error(f"Failed to delete {provider.value} credential for project {project_id}: {e}")
            raise StorageError("Could not delete credential")
        finally:
            db.close()

    def list_for_provider(self, provider) -> List[OAuthCredential]:
        provider = Provider.parse(provider)
        db = self.session_factory()
        try:
            rows = (
                db.query(OAuthCredential)
                .filter(OAuthCredential.provider == provider.value)
                .order_by(OAuthCredential.project_id)
                .all()
            )
            db.expunge_all()
            return rows
        finally:
            db.close()

    def list_for_project(self, project_id: int) -> List[OAuthCredential]:
        db = self.session_factory()
        try:
            rows = (
                db.query(OAuthCredential)
                .filter(OAuthCredential.project_id == project_id)
                .order_by(OAuthCredential.provider)
                .all()
            )
            db.expunge_all()
            return rows
        finally:
            db.close()

    @staticmethod
    def _load(db: Session, project_id: int, provider: Provider) -> Optional[OAuthCredential]:
        row = (
            db.query(OAuthCredential)
            .filter(
                OAuthCredential.project_id == project_id,
                OAuthCredential.provider == provider.value,
            )
            .first()
        )
        if row is not None:
            db.expunge(row)
        return row
