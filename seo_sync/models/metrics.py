"""
Provider metric fact tables

Each table has a unique index over its natural key (project, date and the
provider's dimension columns). Rows are only ever written by the upsert
layer, which overwrites measures in place on conflict.
"""
from sqlalchemy import Column, Integer, String, Float, DateTime, Date, Index

from seo_sync.models.base import Base
from seo_sync.utils.helpers import utcnow


class GscData(Base):
    """Search analytics performance from Search Console"""
    __tablename__ = "gsc_data"
    __table_args__ = (
        Index(
            'gsc_data_unique_idx',
            'project_id', 'date', 'page', 'query', 'country', 'device',
            unique=True,
        ),
        Index('gsc_data_project_date_idx', 'project_id', 'date'),
    )

    NATURAL_KEY = ('project_id', 'date', 'page', 'query', 'country', 'device')
    MEASURES = ('clicks', 'impressions', 'ctr', 'position')

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, nullable=False)

    # Dimensions
    date = Column(Date, nullable=False)
    page = Column(String(1000), nullable=False, default="")
    query = Column(String(500), nullable=False, default="")
    country = Column(String(10), nullable=False, default="all")
    # ISO 3166 alpha-3, lower case (usa, vnm) or 'all'
    device = Column(String(20), nullable=False, default="all")
    # desktop, mobile, tablet or 'all'

    # Measures
    clicks = Column(Integer, nullable=False, default=0)
    impressions = Column(Integer, nullable=False, default=0)
    ctr = Column(Float, nullable=False, default=0.0)
    # Decimal 0-1
    position = Column(Float, nullable=False, default=0.0)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<GscData {self.date} '{self.query}' {self.page}>"


class Ga4Data(Base):
    """Daily traffic by source/medium/device from GA4"""
    __tablename__ = "ga4_data"
    __table_args__ = (
        Index(
            'ga4_data_unique_idx',
            'project_id', 'date', 'property_id', 'source', 'medium', 'device_category',
            unique=True,
        ),
        Index('ga4_data_project_date_idx', 'project_id', 'date'),
    )

    NATURAL_KEY = ('project_id', 'date', 'property_id', 'source', 'medium', 'device_category')
    MEASURES = (
        'sessions', 'users', 'new_users', 'engagement_rate',
        'average_session_duration', 'conversions', 'conversion_rate', 'revenue',
    )

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, nullable=False)

    # Dimensions
    date = Column(Date, nullable=False)
    property_id = Column(String(100), nullable=False)
    source = Column(String(255), nullable=False, default="(direct)")
    medium = Column(String(100), nullable=False, default="(none)")
    device_category = Column(String(50), nullable=False, default="desktop")

    # Traffic
    sessions = Column(Integer, nullable=False, default=0)
    users = Column(Integer, nullable=False, default=0)
    new_users = Column(Integer, nullable=False, default=0)

    # Engagement
    engagement_rate = Column(Float, nullable=False, default=0.0)
    average_session_duration = Column(Float, nullable=False, default=0.0)
    # Seconds

    # Conversions / revenue
    conversions = Column(Integer, nullable=False, default=0)
    conversion_rate = Column(Float, nullable=False, default=0.0)
    revenue = Column(Float, nullable=False, default=0.0)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<Ga4Data {self.date} {self.source}/{self.medium} {self.device_category}>"
