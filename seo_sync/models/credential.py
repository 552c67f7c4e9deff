"""
OAuth credential model

One row per (project, provider). Written by the OAuth callback (initial
issuance, full replace) and by the token refresher (rotation).
"""
from datetime import timedelta
from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, UniqueConstraint

from seo_sync.models.base import Base
from seo_sync.utils.helpers import utcnow


class OAuthCredential(Base):
    """Stored OAuth access/refresh token pair for a project's provider connection"""
    __tablename__ = "oauth_credentials"
    __table_args__ = (
        UniqueConstraint('project_id', 'provider', name='uq_oauth_credentials_project_provider'),
    )

    id = Column(Integer, primary_key=True, index=True)

    project_id = Column(Integer, index=True, nullable=False)
    provider = Column(String(50), index=True, nullable=False)
    # gsc, ga4, ahrefs

    # Token data
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=True)
    # Omitted by some providers/flows
    token_type = Column(String(50), default="Bearer", nullable=False)
    expires_at = Column(DateTime, nullable=True)
    # Naive UTC
    scopes = Column(JSON, nullable=True)

    # Display only
    account_email = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def needs_refresh(self, now, skew: timedelta) -> bool:
        """True once now >= expires_at - skew (unknown expiry counts as expired)"""
        if self.expires_at is None:
            return True
        return now >= self.expires_at - skew

    def __repr__(self):
        return f"<OAuthCredential project={self.project_id} provider='{self.provider}'>"
