"""
Sync run log

One row per orchestrated sync, consumed by the integrations status surface.
"""
from sqlalchemy import Column, Integer, String, Float, DateTime, Date, Text

from seo_sync.models.base import Base
from seo_sync.utils.helpers import utcnow


class SyncRun(Base):
    __tablename__ = "sync_runs"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, index=True, nullable=False)
    provider = Column(String(50), index=True, nullable=False)
    resource_id = Column(String(500), nullable=True)

    date_from = Column(Date, nullable=True)
    date_to = Column(Date, nullable=True)

    status = Column(String(20), nullable=False, default="running")
    # running, success, partial, failed
    rows_synced = Column(Integer, nullable=False, default=0)
    error_code = Column(String(64), nullable=True)
    error_message = Column(Text, nullable=True)

    started_at = Column(DateTime, default=utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    duration_seconds = Column(Float, nullable=True)

    def __repr__(self):
        return f"<SyncRun {self.provider} project={self.project_id} {self.status}>"
