"""
Tests for idempotent metric writes.
"""
from dataclasses import replace
from datetime import date

from seo_sync.models.metrics import GscData, Ga4Data
from seo_sync.services.upsert_service import Ga4MetricRow, GscMetricRow, UpsertLayer

from fakes import gsc_rows


def _count(session_factory, model):
    db = session_factory()
    try:
        return db.query(model).count()
    finally:
        db.close()


def test_empty_batch_writes_nothing(session_factory):
    assert UpsertLayer(session_factory).upsert([]) == 0
    assert _count(session_factory, GscData) == 0


def test_same_rows_twice_leave_one_copy(session_factory):
    upserter = UpsertLayer(session_factory)
    rows = gsc_rows(27, 5)

    assert upserter.upsert(rows) == 5
    assert upserter.upsert(rows) == 5

    assert _count(session_factory, GscData) == 5


def test_refetched_row_overwrites_measures(session_factory):
    upserter = UpsertLayer(session_factory)
    upserter.upsert(gsc_rows(27, 1, clicks=3))
    upserter.upsert(gsc_rows(27, 1, clicks=8))

    db = session_factory()
    try:
        rows = db.query(GscData).all()
        assert len(rows) == 1
        assert rows[0].clicks == 8
        assert rows[0].impressions == 80
    finally:
        db.close()


def test_duplicate_keys_in_one_batch_keep_last(session_factory):
    first = GscMetricRow(project_id=1, date=date(2026, 10, 1), query="shoes", clicks=1)
    second = GscMetricRow(project_id=1, date=date(2026, 10, 1), query="shoes", clicks=9)

    assert UpsertLayer(session_factory).upsert([first, second]) == 1

    db = session_factory()
    try:
        row = db.query(GscData).one()
        assert row.clicks == 9
        assert row.country == "all"
        assert row.device == "all"
        assert row.page == ""
    finally:
        db.close()


def test_keys_differing_in_one_dimension_are_separate_rows(session_factory):
    base = dict(project_id=1, date=date(2026, 10, 1), page="/", query="shoes", country="usa")
    rows = [
        GscMetricRow(device="desktop", **base),
        GscMetricRow(device="mobile", **base),
        GscMetricRow(project_id=2, date=date(2026, 10, 1), page="/", query="shoes", country="usa", device="desktop"),
    ]
    assert UpsertLayer(session_factory).upsert(rows) == 3
    assert _count(session_factory, GscData) == 3


def test_chunked_writes_cover_whole_batch(session_factory):
    upserter = UpsertLayer(session_factory, chunk_size=2)
    assert upserter.upsert(gsc_rows(27, 7)) == 7
    assert _count(session_factory, GscData) == 7


def test_ga4_rows_upsert_on_their_own_key(session_factory):
    upserter = UpsertLayer(session_factory)
    row = Ga4MetricRow(
        project_id=3,
        date=date(2026, 10, 2),
        property_id="123456",
        source="google",
        medium="organic",
        device_category="mobile",
        sessions=10,
        conversions=2,
        conversion_rate=0.2,
    )
    upserter.upsert([row])
    upserter.upsert([replace(row, sessions=12)])

    db = session_factory()
    try:
        stored = db.query(Ga4Data).one()
        assert stored.sessions == 12
        assert stored.property_id == "123456"
    finally:
        db.close()


def test_mixed_batch_writes_both_tables(session_factory):
    rows = gsc_rows(5, 2) + [Ga4MetricRow(project_id=5, date=date(2026, 10, 1), property_id="9")]
    assert UpsertLayer(session_factory).upsert(rows) == 3
    assert _count(session_factory, GscData) == 2
    assert _count(session_factory, Ga4Data) == 1
