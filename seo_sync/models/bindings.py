"""
Resource binding models

Identify which remote resource (Search Console site, GA4 property) under an
authorized account a project syncs from.
"""
from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint

from seo_sync.models.base import Base
from seo_sync.utils.helpers import utcnow


class GscSite(Base):
    """Search Console site bound to a project"""
    __tablename__ = "gsc_sites"
    __table_args__ = (
        UniqueConstraint('project_id', 'site_url', name='uq_gsc_sites_project_site'),
    )

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, index=True, nullable=False)

    site_url = Column(String(500), nullable=False)
    # e.g. https://example.com/ or sc-domain:example.com
    permission_level = Column(String(50), nullable=True)
    # siteOwner, siteFullUser, siteRestrictedUser

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def resource_id(self) -> str:
        return self.site_url

    def __repr__(self):
        return f"<GscSite project={self.project_id} {self.site_url}>"


class Ga4Property(Base):
    """GA4 property bound to a project"""
    __tablename__ = "ga4_properties"
    __table_args__ = (
        UniqueConstraint('project_id', 'property_id', name='uq_ga4_properties_project_property'),
    )

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, index=True, nullable=False)

    property_id = Column(String(100), nullable=False)
    # Numeric id, e.g. '123456789'
    property_name = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def resource_id(self) -> str:
        return self.property_id

    def __repr__(self):
        return f"<Ga4Property project={self.project_id} {self.property_id}>"
