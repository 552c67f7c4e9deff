"""
Idempotent metric writes.

Rows are keyed on their table's natural key (project, date and the provider's
dimension columns). Writing the same rows twice leaves the table as if they
were written once; a re-fetched row overwrites its measures in place.
"""
from dataclasses import asdict, dataclass
from datetime import date
from typing import Callable, ClassVar, Dict, List, Optional, Sequence, Tuple, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from seo_sync.config import get_settings
from seo_sync.errors import StorageError
from seo_sync.models.base import SessionLocal, dialect_insert
from seo_sync.models.metrics import GscData, Ga4Data
from seo_sync.utils.helpers import utcnow
from seo_sync.utils.logger import log


@dataclass(frozen=True)
class GscMetricRow:
    model: ClassVar = GscData

    project_id: int
    date: date
    page: str = ""
    query: str = ""
    country: str = "all"
    device: str = "all"
    clicks: int = 0
    impressions: int = 0
    ctr: float = 0.0
    position: float = 0.0


@dataclass(frozen=True)
class Ga4MetricRow:
    model: ClassVar = Ga4Data

    project_id: int
    date: date
    property_id: str
    source: str = "(direct)"
    medium: str = "(none)"
    device_category: str = "desktop"
    sessions: int = 0
    users: int = 0
    new_users: int = 0
    engagement_rate: float = 0.0
    average_session_duration: float = 0.0
    conversions: int = 0
    conversion_rate: float = 0.0
    revenue: float = 0.0


MetricRow = Union[GscMetricRow, Ga4MetricRow]


def natural_key(row: MetricRow) -> Tuple:
    return tuple(getattr(row, column) for column in row.model.NATURAL_KEY)


class UpsertLayer:
    """
    Writes metric rows with INSERT ... ON CONFLICT DO UPDATE.

    Each ``upsert`` call is one transaction: either every row in the batch is
    written or none is.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        chunk_size: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.chunk_size = chunk_size or get_settings().sync_batch_size

    def upsert(self, rows: Sequence[MetricRow]) -> int:
        """Write rows and return how many distinct natural keys were written"""
        if not rows:
            return 0

        # Last occurrence of a key within the batch wins
        grouped: Dict[type, Dict[Tuple, MetricRow]] = {}
        for row in rows:
            grouped.setdefault(row.model, {})[natural_key(row)] = row

        written = 0
        db = self.session_factory()
        try:
            for model, by_key in grouped.items():
                values = list(by_key.values())
                for start in range(0, len(values), self.chunk_size):
                    self._write_chunk(db, model, values[start:start + self.chunk_size])
                written += len(values)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            log.error(f"Metric upsert of {len(rows)} rows failed: {e}")
            raise StorageError("Metric write failed; batch rolled back")
        finally:
            db.close()

        log.debug(f"Upserted {written} metric rows")
        return written

    @staticmethod
    def _write_chunk(db: Session, model, rows: List[MetricRow]):
        now = utcnow()
        payload = []
        for row in rows:
            values = asdict(row)
            values["created_at"] = now
            values["updated_at"] = now
            payload.append(values)

        stmt = dialect_insert(db, model).values(payload)
        update_columns = {column: stmt.excluded[column] for column in model.MEASURES}
        update_columns["updated_at"] = stmt.excluded.updated_at
        stmt = stmt.on_conflict_do_update(
            index_elements=list(model.NATURAL_KEY),
            set_=update_columns,
        )
        db.execute(stmt)
