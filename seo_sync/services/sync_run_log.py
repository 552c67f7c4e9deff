"""
Sync run log persistence.

Status tracking is best-effort: a failure to write the log is reported and
never breaks the sync it describes.
"""
from datetime import date
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from seo_sync.models.base import SessionLocal
from seo_sync.models.sync_run import SyncRun
from seo_sync.providers import Provider
from seo_sync.utils.helpers import utcnow
from seo_sync.utils.logger import log


class SyncRunLog:
    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def start(
        self,
        project_id: int,
        provider: Provider,
        resource_id: Optional[str],
        date_from: date,
        date_to: date,
    ) -> Optional[int]:
        db = self.session_factory()
        try:
            run = SyncRun(
                project_id=project_id,
                provider=provider.value,
                resource_id=resource_id,
                date_from=date_from,
                date_to=date_to,
                status="running",
                started_at=utcnow(),
            )
            db.add(run)
            db.commit()
            return run.id
        except SQLAlchemyError as e:
            db.rollback()
            log.error(f"Failed to persist sync log for {provider.value} project {project_id}: {e}")
            return None
        finally:
            db.close()

    def finish(
        self,
        run_id: Optional[int],
        rows_synced: int,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> bool:
        if not run_id:
            return False

        db = self.session_factory()
        try:
            run = db.query(SyncRun).filter(SyncRun.id == run_id).first()
            if not run:
                log.warning(f"Sync log {run_id} not found for update")
                return False

            if error_code is None:
                run.status = "success"
            elif rows_synced > 0:
                run.status = "partial"
            else:
                run.status = "failed"

            run.rows_synced = rows_synced
            run.error_code = error_code
            run.error_message = error_message
            run.completed_at = utcnow()
            run.duration_seconds = (run.completed_at - run.started_at).total_seconds()

            db.commit()
            log.info(
                f"Sync logged: {run.provider} project={run.project_id} | {run.status} | "
                f"rows={rows_synced} | {run.duration_seconds:.2f}s"
            )
            return True
        except SQLAlchemyError as e:
            db.rollback()
            log.error(f"Failed to update sync log {run_id}: {e}")
            return False
        finally:
            db.close()

    def latest(self, project_id: int, provider: Provider) -> Optional[SyncRun]:
        db = self.session_factory()
        try:
            run = (
                db.query(SyncRun)
                .filter(SyncRun.project_id == project_id, SyncRun.provider == provider.value)
                .order_by(SyncRun.started_at.desc(), SyncRun.id.desc())
                .first()
            )
            if run is not None:
                db.expunge(run)
            return run
        finally:
            db.close()
