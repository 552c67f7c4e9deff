"""
Google Analytics 4 sync client
Fetches daily traffic by source, medium and device category

GA4 limits a report to 10 metrics; the seven requested here fit one request.
Requests go through the asyncio client, so cancelling a sync aborts the
in-flight report call.
"""
from datetime import date, datetime
from typing import Any, AsyncIterator, Callable, Optional

from google.analytics.data_v1beta import BetaAnalyticsDataAsyncClient
from google.analytics.data_v1beta.types import (
    DateRange,
    Dimension,
    Metric,
    RunReportRequest,
)
from google.api_core import exceptions as google_exceptions
from google.oauth2.credentials import Credentials

from seo_sync.config import get_settings
from seo_sync.connectors.base_connector import BaseConnector
from seo_sync.errors import ProviderAuthorizationFailed, ProviderRequestRejected
from seo_sync.models.credential import OAuthCredential
from seo_sync.providers import Provider
from seo_sync.services.upsert_service import Ga4MetricRow
from seo_sync.utils.logger import log
from seo_sync.utils.retry import RateLimitHit, RetryPolicy, TransientFailure

DIMENSIONS = ['date', 'sessionSource', 'sessionMedium', 'deviceCategory']
METRICS = [
    'sessions',
    'totalUsers',
    'newUsers',
    'engagementRate',
    'averageSessionDuration',
    'conversions',
    'totalRevenue',
]


class GA4Connector(BaseConnector):
    """Connector for the GA4 Data API runReport endpoint"""

    provider = Provider.GA4

    def __init__(
        self,
        client_factory: Optional[Callable[[OAuthCredential], Any]] = None,
        page_size: Optional[int] = None,
        timeout: Optional[float] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        super().__init__("Google Analytics 4", retry_policy)
        settings = get_settings()
        self.page_size = page_size or settings.ga4_page_size
        self.timeout = timeout or settings.provider_request_timeout
        self.client_factory = client_factory or self._build_client

    @staticmethod
    def _build_client(credential: OAuthCredential) -> BetaAnalyticsDataAsyncClient:
        return BetaAnalyticsDataAsyncClient(credentials=Credentials(token=credential.access_token))

    def _format_date(self, value: date) -> str:
        return value.strftime('%Y-%m-%d')

    async def fetch_range(
        self,
        credential: OAuthCredential,
        resource_id: str,
        date_from: date,
        date_to: date,
    ) -> AsyncIterator[Ga4MetricRow]:
        client = self.client_factory(credential)
        offset = 0

        try:
            while True:
                request = RunReportRequest(
                    property=f"properties/{resource_id}",
                    date_ranges=[DateRange(
                        start_date=self._format_date(date_from),
                        end_date=self._format_date(date_to)
                    )],
                    dimensions=[Dimension(name=name) for name in DIMENSIONS],
                    metrics=[Metric(name=name) for name in METRICS],
                    limit=self.page_size,
                    offset=offset,
                )

                response = await self._fetch_page(
                    lambda: self._run_report(client, request),
                    operation_name=f"GA4 {resource_id} offset={offset}",
                )

                rows = list(response.rows)
                for row in rows:
                    yield self._read_row(self._to_metric_row, credential.project_id, resource_id, row, date_to)

                offset += len(rows)
                log.info(f"Fetched {offset}/{response.row_count} rows from GA4 property {resource_id}")

                if not rows or offset >= response.row_count:
                    break
        finally:
            await client.transport.close()

    async def _run_report(self, client, request: RunReportRequest):
        try:
            return await client.run_report(request, timeout=self.timeout)
        except (google_exceptions.TooManyRequests, google_exceptions.ResourceExhausted) as e:
            raise RateLimitHit(f"GA4 quota: {e.message}")
        except (google_exceptions.ServerError, google_exceptions.RetryError) as e:
            raise TransientFailure(f"GA4 {type(e).__name__}")
        except (google_exceptions.Unauthenticated, google_exceptions.PermissionDenied) as e:
            raise ProviderAuthorizationFailed(f"GA4 refused access: {e.message}")
        except google_exceptions.GoogleAPICallError as e:
            raise ProviderRequestRejected(f"GA4 rejected report: {e.message}")
        except OSError as e:
            raise TransientFailure(f"{type(e).__name__}: {e}")

    @staticmethod
    def _to_metric_row(project_id: int, property_id: str, row, fallback_date: date) -> Ga4MetricRow:
        dims = [value.value for value in row.dimension_values]
        dims += [''] * (len(DIMENSIONS) - len(dims))
        metrics = [value.value for value in row.metric_values]
        metrics += ['0'] * (len(METRICS) - len(metrics))

        # GA4 returns dates as YYYYMMDD
        row_date = datetime.strptime(dims[0], '%Y%m%d').date() if dims[0] else fallback_date

        sessions = int(float(metrics[0] or 0))
        conversions = int(float(metrics[5] or 0))

        return Ga4MetricRow(
            project_id=project_id,
            date=row_date,
            property_id=property_id,
            source=dims[1] or '(direct)',
            medium=dims[2] or '(none)',
            device_category=dims[3] or 'desktop',
            sessions=sessions,
            users=int(float(metrics[1] or 0)),
            new_users=int(float(metrics[2] or 0)),
            engagement_rate=round(float(metrics[3] or 0), 6),
            average_session_duration=round(float(metrics[4] or 0), 2),
            conversions=conversions,
            conversion_rate=round(conversions / sessions, 6) if sessions > 0 else 0.0,
            revenue=round(float(metrics[6] or 0), 2),
        )
