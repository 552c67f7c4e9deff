"""
Tests for the GA4 sync client using a fake Data API client.
"""
import asyncio
from datetime import date
from types import SimpleNamespace

import pytest
from google.api_core import exceptions as google_exceptions

from seo_sync.connectors.ga4_connector import GA4Connector
from seo_sync.errors import (
    ProviderAuthorizationFailed,
    ProviderRateLimited,
    ProviderRequestRejected,
    ProviderUnavailable,
)
from seo_sync.models.credential import OAuthCredential

from fakes import collect, fast_retry

PROPERTY_ID = "123456789"
CREDENTIAL = OAuthCredential(project_id=8, provider="ga4", access_token="token")


def report_row(day="20261001", source="google", medium="organic", device="mobile",
               sessions="10", users="8", new_users="5", engagement="0.65",
               duration="73.2", conversions="2", revenue="150.5"):
    return SimpleNamespace(
        dimension_values=[SimpleNamespace(value=v) for v in (day, source, medium, device)],
        metric_values=[
            SimpleNamespace(value=v)
            for v in (sessions, users, new_users, engagement, duration, conversions, revenue)
        ],
    )


def report(rows, row_count=None):
    return SimpleNamespace(rows=rows, row_count=len(rows) if row_count is None else row_count)


class FakeTransport:
    def __init__(self):
        self.closed = False

    async def close(self):
        self.closed = True


class FakeDataClient:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.requests = []
        self.transport = FakeTransport()

    async def run_report(self, request, timeout=None):
        self.requests.append(request)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _fetch(client, page_size=10000, max_attempts=3):
    connector = GA4Connector(
        client_factory=lambda credential: client,
        page_size=page_size,
        retry_policy=fast_retry(max_attempts),
    )
    rows = connector.fetch_range(CREDENTIAL, PROPERTY_ID, date(2026, 9, 19), date(2026, 10, 19))
    return asyncio.run(collect(rows))


def test_paginates_by_offset_until_row_count():
    client = FakeDataClient([
        report([report_row(source="a"), report_row(source="b")], row_count=3),
        report([report_row(source="c")], row_count=3),
    ])

    rows = _fetch(client, page_size=2)

    assert [row.source for row in rows] == ["a", "b", "c"]
    assert [request.offset for request in client.requests] == [0, 2]
    assert client.requests[0].limit == 2
    assert client.requests[0].property == f"properties/{PROPERTY_ID}"
    assert client.requests[0].date_ranges[0].start_date == "2026-09-19"


def test_empty_report_yields_nothing():
    client = FakeDataClient([report([], row_count=0)])
    assert _fetch(client) == []
    assert len(client.requests) == 1


def test_row_mapping():
    client = FakeDataClient([report([report_row()])])

    (row,) = _fetch(client)

    assert row.project_id == 8
    assert row.property_id == PROPERTY_ID
    assert row.date == date(2026, 10, 1)
    assert (row.source, row.medium, row.device_category) == ("google", "organic", "mobile")
    assert row.sessions == 10
    assert row.users == 8
    assert row.new_users == 5
    assert row.engagement_rate == 0.65
    assert row.average_session_duration == 73.2
    assert row.conversions == 2
    assert row.conversion_rate == 0.2
    assert row.revenue == 150.5


def test_missing_dimensions_use_defaults_and_zero_sessions_has_no_rate():
    client = FakeDataClient([report([report_row(source="", medium="", device="", sessions="0")])])

    (row,) = _fetch(client)

    assert (row.source, row.medium, row.device_category) == ("(direct)", "(none)", "desktop")
    assert row.conversion_rate == 0.0


def test_quota_errors_are_retried_then_raised():
    client = FakeDataClient([google_exceptions.TooManyRequests("quota")] * 3)
    with pytest.raises(ProviderRateLimited):
        _fetch(client)
    assert len(client.requests) == 3


def test_transient_error_recovers():
    client = FakeDataClient([
        google_exceptions.ServiceUnavailable("down"),
        report([report_row()]),
    ])
    assert len(_fetch(client)) == 1


def test_server_errors_become_unavailable():
    client = FakeDataClient([google_exceptions.InternalServerError("oops")] * 2)
    with pytest.raises(ProviderUnavailable):
        _fetch(client, max_attempts=2)


def test_permission_denied_is_not_retried():
    client = FakeDataClient([google_exceptions.PermissionDenied("no access"), report([])])
    with pytest.raises(ProviderAuthorizationFailed):
        _fetch(client)
    assert len(client.requests) == 1


def test_client_is_closed_after_the_last_page():
    client = FakeDataClient([report([report_row()])])
    _fetch(client)
    assert client.transport.closed


def test_unreadable_row_is_rejected_and_client_closed():
    client = FakeDataClient([report([report_row(day="2026-10-01")])])
    with pytest.raises(ProviderRequestRejected):
        _fetch(client)
    assert client.transport.closed


class HangingDataClient(FakeDataClient):
    def __init__(self):
        super().__init__([])
        self.called = asyncio.Event()
        self.aborted = False

    async def run_report(self, request, timeout=None):
        self.requests.append(request)
        self.called.set()
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.aborted = True
            raise


def test_cancelling_a_fetch_aborts_the_report_call():
    client = HangingDataClient()
    connector = GA4Connector(client_factory=lambda credential: client, retry_policy=fast_retry())

    async def scenario():
        task = asyncio.create_task(
            collect(connector.fetch_range(CREDENTIAL, PROPERTY_ID, date(2026, 9, 19), date(2026, 10, 19)))
        )
        await client.called.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())

    assert client.aborted
    assert client.transport.closed
