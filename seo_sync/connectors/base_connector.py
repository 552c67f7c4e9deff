"""
Base connector class for provider sync clients
"""
from abc import ABC, abstractmethod
from datetime import date
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from seo_sync.errors import ProviderRateLimited, ProviderRequestRejected, ProviderUnavailable
from seo_sync.models.credential import OAuthCredential
from seo_sync.providers import Provider
from seo_sync.services.upsert_service import MetricRow
from seo_sync.utils.logger import log
from seo_sync.utils.retry import RateLimitHit, RetryPolicy, RetryStats, TransientFailure


class BaseConnector(ABC):
    """
    Base class for provider sync clients.

    A connector turns (credential, resource, date range) into a stream of
    metric rows. Each page request goes through the shared ``RetryPolicy``;
    a page that still fails after the last attempt ends the stream with
    ``ProviderRateLimited`` or ``ProviderUnavailable``. A row the provider
    sent in an unexpected shape ends it with ``ProviderRequestRejected``.
    """

    provider: Provider

    def __init__(self, name: str, retry_policy: Optional[RetryPolicy] = None):
        self.name = name
        self.retry_policy = retry_policy or RetryPolicy.from_settings()

    @abstractmethod
    def fetch_range(
        self,
        credential: OAuthCredential,
        resource_id: str,
        date_from: date,
        date_to: date,
    ) -> AsyncIterator[MetricRow]:
        """Yield every row for the inclusive date range, page by page"""

    async def _fetch_page(
        self,
        call: Callable[[], Awaitable[Any]],
        operation_name: str,
    ) -> Any:
        stats = RetryStats()
        try:
            result = await self.retry_policy.run(call, operation_name=operation_name, stats=stats)
        except RateLimitHit as e:
            log.warning(f"{operation_name} retries exhausted: {stats.to_dict()}")
            raise ProviderRateLimited(f"{self.name} rate limit persisted after {stats.attempts} attempts: {e}")
        except TransientFailure as e:
            log.warning(f"{operation_name} retries exhausted: {stats.to_dict()}")
            raise ProviderUnavailable(f"{self.name} unavailable after {stats.attempts} attempts: {e}")

        log.debug(f"{operation_name} fetched")
        return result

    def _read_row(self, parse: Callable[..., MetricRow], *args) -> MetricRow:
        """Parse one provider row, converting shape errors into the error taxonomy"""
        try:
            return parse(*args)
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
            raise ProviderRequestRejected(f"{self.name} returned an unreadable row: {type(e).__name__}: {e}")
