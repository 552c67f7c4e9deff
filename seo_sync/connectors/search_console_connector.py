"""
Google Search Console sync client
Fetches search analytics rows by date, page, query, country and device

The discovery client is blocking and runs in a worker thread. Cancelling a
sync returns control at once; the abandoned request is bounded by the
httplib2 socket timeout (provider_request_timeout).
"""
import asyncio
from datetime import date, datetime
from typing import Any, AsyncIterator, Callable, Dict, Optional

import httplib2
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from seo_sync.config import get_settings
from seo_sync.connectors.base_connector import BaseConnector
from seo_sync.errors import ProviderAuthorizationFailed, ProviderRequestRejected
from seo_sync.models.credential import OAuthCredential
from seo_sync.providers import Provider
from seo_sync.services.upsert_service import GscMetricRow
from seo_sync.utils.logger import log
from seo_sync.utils.retry import RateLimitHit, RetryPolicy, TransientFailure

DIMENSIONS = ['date', 'page', 'query', 'country', 'device']


class SearchConsoleConnector(BaseConnector):
    """Connector for the Search Console searchanalytics.query API"""

    provider = Provider.GSC

    def __init__(
        self,
        service_factory: Optional[Callable[[OAuthCredential], Any]] = None,
        row_limit: Optional[int] = None,
        timeout: Optional[float] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        super().__init__("Google Search Console", retry_policy)
        settings = get_settings()
        self.row_limit = row_limit or settings.gsc_row_limit
        self.timeout = timeout or settings.provider_request_timeout
        self.service_factory = service_factory or self._build_service

    def _build_service(self, credential: OAuthCredential):
        credentials = Credentials(token=credential.access_token)
        http = AuthorizedHttp(credentials, http=httplib2.Http(timeout=self.timeout))
        return build('searchconsole', 'v1', http=http, cache_discovery=False)

    async def fetch_range(
        self,
        credential: OAuthCredential,
        resource_id: str,
        date_from: date,
        date_to: date,
    ) -> AsyncIterator[GscMetricRow]:
        service = self.service_factory(credential)
        start_row = 0

        while True:
            request = {
                'startDate': date_from.strftime('%Y-%m-%d'),
                'endDate': date_to.strftime('%Y-%m-%d'),
                'dimensions': DIMENSIONS,
                'rowLimit': self.row_limit,
                'startRow': start_row,
            }

            response = await self._fetch_page(
                lambda: self._query(service, resource_id, request),
                operation_name=f"GSC {resource_id} startRow={start_row}",
            )

            rows = response.get('rows', [])
            if not rows:
                break

            for row in rows:
                yield self._read_row(self._to_metric_row, credential.project_id, row, date_to)

            log.info(f"Fetched {start_row + len(rows)} rows from Search Console for {resource_id}")

            if len(rows) < self.row_limit:
                break
            start_row += self.row_limit

    async def _query(self, service, site_url: str, body: Dict) -> Dict:
        call = service.searchanalytics().query(siteUrl=site_url, body=body)
        try:
            return await asyncio.to_thread(call.execute)
        except HttpError as e:
            status = e.resp.status
            if status == 429:
                raise RateLimitHit("HTTP 429 from Search Console")
            if status >= 500:
                raise TransientFailure(f"HTTP {status} from Search Console")
            if status in (401, 403):
                raise ProviderAuthorizationFailed(f"Search Console refused access to {site_url} (HTTP {status})")
            raise ProviderRequestRejected(f"Search Console rejected query for {site_url} (HTTP {status})")
        except (httplib2.HttpLib2Error, OSError) as e:
            raise TransientFailure(f"{type(e).__name__}: {e}")

    @staticmethod
    def _to_metric_row(project_id: int, row: Dict, fallback_date: date) -> GscMetricRow:
        keys = row.get('keys') or []
        values = dict(zip(DIMENSIONS, keys))

        if values.get('date'):
            row_date = datetime.strptime(values['date'], '%Y-%m-%d').date()
        else:
            row_date = fallback_date

        return GscMetricRow(
            project_id=project_id,
            date=row_date,
            page=values.get('page') or '',
            query=values.get('query') or '',
            country=(values.get('country') or 'all').lower(),
            device=(values.get('device') or 'all').lower(),
            clicks=int(row.get('clicks', 0)),
            impressions=int(row.get('impressions', 0)),
            ctr=round(float(row.get('ctr', 0)), 6),  # Decimal 0-1
            position=round(float(row.get('position', 0)), 2),
        )
